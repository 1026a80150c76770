"""Tests for builds/bundle.py module.

Tests failure classification, result normalization, initial file
extraction, and diagnostic forwarding.
"""

import logging
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, call, patch

import pytest

from esbuild_adapter.builds.bundle import bundle, is_build_failure, log_messages
from esbuild_adapter.builds.options import BuildOptions
from esbuild_adapter.builds.runner import (
    BuildFailure,
    BuildResult,
    BuildSession,
    EsbuildExecutionError,
)
from esbuild_adapter.types import FileInfo, Location, Message, OutputFile


@pytest.fixture
def options(workspace: Path) -> BuildOptions:
    """Create build options rooted at the workspace."""
    return BuildOptions(
        entry_points={"main": "src/main.ts", "polyfills": "src/polyfills.ts"},
        outdir="dist",
        abs_working_dir=workspace,
        entry_names="[name].[hash]",
    )


def _result(workspace: Path, outputs: dict[str, dict]) -> BuildResult:
    """Create a raw binding result with absolute output paths."""
    return BuildResult(
        errors=[],
        warnings=[],
        output_files=[
            OutputFile(path=str(workspace / relative), contents=b"")
            for relative in outputs
        ],
        metafile={"inputs": {}, "outputs": outputs},
    )


class TestIsBuildFailure:
    """Tests for is_build_failure function."""

    def test_build_failure(self):
        """Should accept a BuildFailure."""
        assert is_build_failure(BuildFailure([Message(text="x")], [])) is True

    def test_object_with_both_fields(self):
        """Should accept any object with errors and warnings."""
        assert is_build_failure(SimpleNamespace(errors=[], warnings=[])) is True

    def test_exception_with_both_fields(self):
        """Should accept a foreign exception carrying both fields."""
        error = RuntimeError("boom")
        error.errors = []
        error.warnings = []
        assert is_build_failure(error) is True

    def test_mapping_with_both_keys(self):
        """Should accept a mapping with errors and warnings keys."""
        assert is_build_failure({"errors": [], "warnings": []}) is True

    @pytest.mark.parametrize(
        "value",
        [
            None,
            0,
            1.5,
            True,
            "errors warnings",
            b"errors",
            SimpleNamespace(errors=[]),
            SimpleNamespace(warnings=[]),
            {"errors": []},
            ValueError("not a build failure"),
            EsbuildExecutionError("missing binary"),
        ],
    )
    def test_rejects_other_values(self, value):
        """Should reject values missing either field."""
        assert is_build_failure(value) is False


class TestBundle:
    """Tests for bundle function."""

    def test_forces_metafile_and_in_memory_output(self, options, workspace):
        """Should request the metafile and disable writing on fresh builds."""
        with patch("esbuild_adapter.builds.runner.build") as mock_build:
            mock_build.return_value = _result(workspace, {})
            bundle(workspace, options)

        forced = mock_build.call_args[0][0]
        assert forced.metafile is True
        assert forced.write is False
        assert forced.entry_points == options.entry_points
        # The caller's options are left alone
        assert options.metafile is False
        assert options.write is True

    def test_forwards_binding_settings(self, options, workspace, tmp_path):
        """Should pass binary, timeout and tmp_dir to the binding."""
        with patch("esbuild_adapter.builds.runner.build") as mock_build:
            mock_build.return_value = _result(workspace, {})
            bundle(workspace, options, binary="esb", timeout=30, tmp_dir=tmp_path)

        assert mock_build.call_args.kwargs == {
            "binary": "esb",
            "timeout": 30,
            "tmp_dir": tmp_path,
        }

    def test_paths_made_relative(self, options, workspace):
        """Should rewrite every output path relative to the workspace root."""
        raw = _result(
            workspace,
            {
                "dist/main.ABC123.js": {"entryPoint": "src/main.ts"},
                "dist/chunk-XYZ.js": {},
                "dist/assets/logo.svg": {},
            },
        )
        with patch("esbuild_adapter.builds.runner.build", return_value=raw):
            result = bundle(workspace, options)

        assert [f.path for f in result.output_files] == [
            "dist/main.ABC123.js",
            "dist/chunk-XYZ.js",
            "dist/assets/logo.svg",
        ]
        assert all(not Path(f.path).is_absolute() for f in result.output_files)

    def test_raw_result_left_untouched(self, options, workspace):
        """Should build new records instead of mutating the binding result."""
        raw = _result(workspace, {"dist/main.js": {"entryPoint": "src/main.ts"}})
        with patch("esbuild_adapter.builds.runner.build", return_value=raw):
            result = bundle(workspace, options)

        assert raw.output_files[0].path == str(workspace / "dist" / "main.js")
        assert raw.initial_files == []
        assert result is not raw

    def test_initial_files_from_entry_points(self, options, workspace):
        """Should list exactly the outputs the metafile marks as entry points."""
        raw = _result(
            workspace,
            {
                "dist/polyfills.7S5G3MDY.js": {"entryPoint": "src/polyfills.ts"},
                "dist/chunk-XYZ.js": {},
                "dist/main.ABC123.js": {"entryPoint": "src/main.ts"},
                "dist/main.ABC123.js.map": {},
            },
        )
        with patch("esbuild_adapter.builds.runner.build", return_value=raw):
            result = bundle(workspace, options)

        assert result.initial_files == [
            FileInfo(
                file="dist/polyfills.7S5G3MDY.js", name="polyfills", extension=".js"
            ),
            FileInfo(file="dist/main.ABC123.js", name="main", extension=".js"),
        ]

    def test_initial_file_name_and_extension(self, options, workspace):
        """Should take the name before the first dot and the last suffix."""
        raw = _result(
            workspace, {"dist/styles.QWERTY12.css": {"entryPoint": "src/styles.css"}}
        )
        with patch("esbuild_adapter.builds.runner.build", return_value=raw):
            result = bundle(workspace, options)

        assert result.initial_files == [
            FileInfo(file="dist/styles.QWERTY12.css", name="styles", extension=".css")
        ]

    def test_output_missing_from_metafile(self, options, workspace):
        """Should not treat outputs absent from the metafile as initial."""
        raw = BuildResult(
            errors=[],
            warnings=[],
            output_files=[OutputFile(path=str(workspace / "dist/main.js"), contents=b"")],
            metafile={"outputs": {}},
        )
        with patch("esbuild_adapter.builds.runner.build", return_value=raw):
            result = bundle(workspace, options)

        assert result.initial_files == []
        assert result.output_files[0].path == "dist/main.js"

    def test_without_metafile(self, options, workspace):
        """Should handle a result with no metafile."""
        raw = BuildResult(
            errors=[],
            warnings=[],
            output_files=[OutputFile(path=str(workspace / "dist/main.js"), contents=b"")],
        )
        with patch("esbuild_adapter.builds.runner.build", return_value=raw):
            result = bundle(workspace, options)

        assert result.initial_files == []

    def test_build_failure_returned(self, options, workspace):
        """Should return a build failure instead of raising it."""
        failure = BuildFailure([Message(text="Could not resolve")], [Message(text="w")])
        with patch("esbuild_adapter.builds.runner.build", side_effect=failure):
            outcome = bundle(workspace, options)

        assert outcome is failure
        assert len(outcome.errors) == 1
        assert len(outcome.warnings) == 1
        assert not hasattr(outcome, "output_files")

    def test_duck_typed_failure_returned(self, options, workspace):
        """Should return any raised value carrying errors and warnings."""
        failure = RuntimeError("foreign failure")
        failure.errors = ["e"]
        failure.warnings = []
        with patch("esbuild_adapter.builds.runner.build", side_effect=failure):
            assert bundle(workspace, options) is failure

    def test_unexpected_exception_propagates(self, options, workspace):
        """Should re-raise the same exception when it is not a build failure."""
        error = RuntimeError("bug")
        with patch("esbuild_adapter.builds.runner.build", side_effect=error):
            with pytest.raises(RuntimeError) as exc_info:
                bundle(workspace, options)

        assert exc_info.value is error

    def test_execution_error_propagates(self, options, workspace):
        """Should not convert execution errors into build failures."""
        with patch("subprocess.run", side_effect=FileNotFoundError("esbuild")):
            with pytest.raises(EsbuildExecutionError):
                bundle(workspace, options)

    def test_end_to_end_with_fake_esbuild(self, options, workspace, fake_esbuild):
        """Should normalize a real binding run."""
        fake = fake_esbuild(
            {
                "main.ABC123.js": (b"main", {"entryPoint": "src/main.ts"}),
                "chunk-XYZ.js": (b"chunk", {}),
            }
        )
        with patch("subprocess.run", side_effect=fake) as mock_run:
            result = bundle(workspace, options)

        cmd = mock_run.call_args[0][0]
        assert any(arg.startswith("--metafile=") for arg in cmd)
        assert "--outdir=dist" not in cmd
        assert [f.path for f in result.output_files] == [
            "dist/main.ABC123.js",
            "dist/chunk-XYZ.js",
        ]
        assert result.initial_files == [
            FileInfo(file="dist/main.ABC123.js", name="main", extension=".js")
        ]
        assert not (workspace / "dist").exists()

    def test_symlinked_workspace(self, linked_workspace, fake_esbuild):
        """Should find initial files when the workspace path is a symlink."""
        options = BuildOptions(
            entry_points=["src/main.ts"],
            outdir="dist",
            abs_working_dir=linked_workspace,
        )
        fake = fake_esbuild(
            {"main.js": (b"main", {"entryPoint": "src/main.ts"})}, real_cwd=True
        )
        with patch("subprocess.run", side_effect=fake):
            result = bundle(linked_workspace, options)

        assert [f.path for f in result.output_files] == ["dist/main.js"]
        assert result.initial_files == [
            FileInfo(file="dist/main.js", name="main", extension=".js")
        ]


class TestBundleRebuild:
    """Tests for bundle function with a rebuild session."""

    def test_rebuild_does_not_call_build(self, options, workspace):
        """Should call rebuild() instead of starting a fresh build."""
        session = MagicMock(spec=BuildSession)
        session.rebuild.return_value = _result(
            workspace, {"dist/main.js": {"entryPoint": "src/main.ts"}}
        )
        with patch("esbuild_adapter.builds.runner.build") as mock_build:
            result = bundle(workspace, session)

        mock_build.assert_not_called()
        session.rebuild.assert_called_once_with()
        assert [f.path for f in result.output_files] == ["dist/main.js"]
        assert result.initial_files == [
            FileInfo(file="dist/main.js", name="main", extension=".js")
        ]

    def test_rebuild_keeps_session_options(self, workspace, fake_esbuild):
        """Should reuse the session options without forcing flags again."""
        options = BuildOptions(
            entry_points=["src/main.ts"],
            outdir="dist",
            abs_working_dir=workspace,
            incremental=True,
        )
        fake = fake_esbuild({"main.js": (b"x", {"entryPoint": "src/main.ts"})})
        with patch("subprocess.run", side_effect=fake):
            first = bundle(workspace, options)
            session = first.rebuild
            with patch("esbuild_adapter.builds.runner.build") as mock_build:
                second = bundle(workspace, session)

        mock_build.assert_not_called()
        assert session.rebuild_count == 1
        assert session.options.metafile is True
        assert session.options.write is False
        assert [f.path for f in second.output_files] == ["dist/main.js"]
        assert second.initial_files == first.initial_files

    def test_rebuild_failure_returned(self, workspace):
        """Should return a failure raised by rebuild()."""
        failure = BuildFailure([Message(text="x")], [])
        session = MagicMock(spec=BuildSession)
        session.rebuild.side_effect = failure

        assert bundle(workspace, session) is failure

    def test_disposed_session_raises(self, options, workspace):
        """Should propagate the error from a disposed session."""
        session = BuildSession(options.with_forced_flags())
        session.dispose()

        with pytest.raises(EsbuildExecutionError):
            bundle(workspace, session)


class TestLogMessages:
    """Tests for log_messages function."""

    @pytest.fixture
    def error(self) -> Message:
        return Message(
            text='Could not resolve "./missing"',
            location=Location(
                file="src/main.ts",
                line=1,
                column=7,
                length=11,
                line_text='import "./missing";',
            ),
        )

    @pytest.fixture
    def warning(self) -> Message:
        return Message(text="Unsupported feature", id="unsupported")

    def test_nothing_to_log(self):
        """Should not write anything for empty lists."""
        sink = MagicMock()
        log_messages(sink, warnings=[], errors=[])

        sink.warning.assert_not_called()
        sink.error.assert_not_called()

    def test_errors_only(self, error):
        """Should write one error and no warnings."""
        sink = MagicMock()
        log_messages(sink, warnings=[], errors=[error])

        sink.warning.assert_not_called()
        sink.error.assert_called_once()
        assert 'Could not resolve "./missing"' in sink.error.call_args[0][0]

    def test_warnings_before_errors(self, error, warning):
        """Should write warnings before errors."""
        sink = MagicMock()
        log_messages(sink, warnings=[warning], errors=[error])

        assert [c[0] for c in sink.mock_calls] == ["warning", "error"]

    def test_messages_joined_with_newline(self, warning):
        """Should join formatted messages into a single write."""
        sink = MagicMock()
        second = Message(text="Another warning")
        log_messages(sink, warnings=[warning, second], color=False)

        sink.warning.assert_called_once()
        text = sink.warning.call_args[0][0]
        assert "Unsupported feature [unsupported]" in text
        assert "Another warning" in text

    def test_uses_formatter(self, error):
        """Should delegate formatting to format_messages."""
        sink = MagicMock()
        with patch(
            "esbuild_adapter.builds.bundle.format_messages",
            return_value=["first", "second"],
        ) as mock_format:
            log_messages(sink, errors=[error])

        assert mock_format.call_args == call([error], kind="error", color=True)
        sink.error.assert_called_once_with("first\nsecond")

    def test_colorized_by_default(self, error):
        """Should colorize formatted text by default."""
        sink = MagicMock()
        log_messages(sink, errors=[error])

        assert "\x1b[" in sink.error.call_args[0][0]

    def test_with_standard_logger(self, error, warning, caplog):
        """Should work with a logging.Logger sink."""
        test_logger = logging.getLogger("esbuild_adapter.tests")
        with caplog.at_level(logging.WARNING, logger="esbuild_adapter.tests"):
            log_messages(test_logger, warnings=[warning], errors=[error], color=False)

        assert [r.levelno for r in caplog.records] == [logging.WARNING, logging.ERROR]
        assert caplog.records[1].getMessage().startswith("✘ [ERROR]")
