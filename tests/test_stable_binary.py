import os
import sys

import pytest

from engramui.paths import stable_binary_path
from engramui.results import (
    Action,
    DowngradeBlockedError,
    InstallerError,
    UnsupportedPlatformError,
)
from engramui.stable_binary import (
    compare_versions,
    copy_file,
    ensure_stable_binary,
    files_are_identical,
    resolve_binary_version,
)


def _write(path, data, mode=0o755):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as fh:
        fh.write(data)
    os.chmod(path, mode)


def _stable(home):
    return stable_binary_path(str(home), str(home), "linux")


@pytest.mark.parametrize(
    "a, b, want",
    [
        ("1.2.3", "v1.2.3", 0),
        ("1.0.0", "2.0.0", -1),
        ("2.0.0", "1.0.0", 1),
        ("1.10.0", "1.9.0", 1),
        ("dev", "1.0.0", 0),
    ],
)
def test_compare_versions(a, b, want):
    assert compare_versions(a, b) == want


def test_source_already_stable(tmp_path):
    stable = _stable(tmp_path)
    _write(stable, b"binary content")
    result = ensure_stable_binary(stable, str(tmp_path), str(tmp_path), goos="linux", source_version="1.0.0")
    assert result.action == Action.SKIPPED
    assert result.destination == stable
    assert result.notes == "already at stable path"


def test_byte_identical(tmp_path):
    content = b"binary content v1.0.0"
    source = str(tmp_path / "source-engram-ui")
    _write(source, content)
    _write(_stable(tmp_path), content)
    calls = []

    def resolver(path):
        calls.append(path)
        return "9.9.9"

    result = ensure_stable_binary(
        source, str(tmp_path), str(tmp_path), goos="linux", version_resolver=resolver
    )
    assert result.action == Action.SKIPPED
    assert result.notes == "stable binary is identical"
    assert calls == []


def test_new_install(tmp_path):
    content = b"binary content"
    source = str(tmp_path / "source-engram-ui")
    _write(source, content)
    result = ensure_stable_binary(source, str(tmp_path), str(tmp_path), goos="linux", source_version="1.0.0")
    stable = _stable(tmp_path)
    assert result.action == Action.INSTALLED
    assert result.destination == stable
    with open(stable, "rb") as fh:
        assert fh.read() == content


def test_upgrade_allowed(tmp_path):
    source = str(tmp_path / "source-engram-ui")
    _write(source, b"binary content v2.0")
    stable = _stable(tmp_path)
    _write(stable, b"binary content v1.0")
    result = ensure_stable_binary(
        source,
        str(tmp_path),
        str(tmp_path),
        goos="linux",
        source_version="1.5.0",
        version_resolver=lambda path: "1.0.0",
    )
    assert result.action == Action.OVERWRITTEN
    with open(stable, "rb") as fh:
        assert fh.read() == b"binary content v2.0"


def test_downgrade_blocked(tmp_path):
    source = str(tmp_path / "source-engram-ui")
    _write(source, b"binary content v1.0")
    stable = _stable(tmp_path)
    _write(stable, b"binary content v2.0")
    with pytest.raises(DowngradeBlockedError) as info:
        ensure_stable_binary(
            source,
            str(tmp_path),
            str(tmp_path),
            goos="linux",
            source_version="1.0.0",
            version_resolver=lambda path: "2.0.0",
        )
    assert info.value.result.action == Action.BLOCKED_DOWNGRADE
    assert info.value.result.installed_version == "2.0.0"
    assert info.value.result.source_version == "1.0.0"
    with open(stable, "rb") as fh:
        assert fh.read() == b"binary content v2.0"


def test_parse_failure_fallback(tmp_path):
    source = str(tmp_path / "source-engram-ui")
    _write(source, b"binary content v1.0")
    stable = _stable(tmp_path)
    _write(stable, b"binary content existing")

    def failing(path):
        raise InstallerError("version parse failed: unparseable output")

    result = ensure_stable_binary(
        source, str(tmp_path), str(tmp_path), goos="linux", source_version="1.0.0", version_resolver=failing
    )
    assert result.action == Action.OVERWRITTEN
    with open(stable, "rb") as fh:
        assert fh.read() == b"binary content v1.0"


def test_empty_installed_version_overwrites(tmp_path):
    source = str(tmp_path / "source-engram-ui")
    _write(source, b"new")
    stable = _stable(tmp_path)
    _write(stable, b"old content")
    result = ensure_stable_binary(
        source, str(tmp_path), str(tmp_path), goos="linux", source_version="0.1.0", version_resolver=lambda p: ""
    )
    assert result.action == Action.OVERWRITTEN


def test_unsupported_platform(tmp_path):
    with pytest.raises(UnsupportedPlatformError):
        ensure_stable_binary(str(tmp_path / "x"), str(tmp_path), "", goos="plan9")


def test_files_are_identical(tmp_path):
    f1, f2, f3 = (str(tmp_path / n) for n in ("file1", "file2", "file3"))
    _write(f1, b"identical content", 0o644)
    _write(f2, b"identical content", 0o644)
    _write(f3, b"different content", 0o644)
    assert files_are_identical(f1, f2) is True
    assert files_are_identical(f1, f3) is False
    with pytest.raises(OSError):
        files_are_identical(f1, str(tmp_path / "nonexistent"))


def test_copy_file(tmp_path):
    src = str(tmp_path / "source")
    dst = str(tmp_path / "dest")
    _write(src, b"file content", 0o644)
    copy_file(src, dst)
    with open(dst, "rb") as fh:
        assert fh.read() == b"file content"
    assert os.stat(dst).st_mode & 0o111 != 0


def _script(path, output):
    text = (
        f"#!{sys.executable}\n"
        "import sys\n"
        "if len(sys.argv) > 1 and sys.argv[1] == 'version':\n"
        f"    print({output!r})\n"
    )
    _write(str(path), text.encode())
    return str(path)


def test_resolve_binary_version(tmp_path):
    with_v = _script(tmp_path / "mock-engram-ui", "engram-ui v1.2.3")
    assert resolve_binary_version(with_v) == "v1.2.3"
    without_v = _script(tmp_path / "mock-engram-ui-no-v", "engram-ui 2.0.0")
    assert resolve_binary_version(without_v) == "2.0.0"
    with pytest.raises(InstallerError):
        resolve_binary_version(str(tmp_path / "nonexistent"))


def test_resolve_binary_version_unparseable(tmp_path):
    single = _script(tmp_path / "mock-single", "oops")
    with pytest.raises(InstallerError, match="unable to parse version"):
        resolve_binary_version(single)