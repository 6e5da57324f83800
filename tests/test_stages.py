# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Tests for the fixed stage table."""

from mlcbuild.pipeline import ArtifactKind, StageName, build_stages, settings_path
from mlcbuild.pipeline.constants import IMPORT_SUCCESS_MARKER


def stages_by_name(config):
    return {stage.name: stage for stage in build_stages(config)}


class TestStageTable:

    def test_fixed_order(self, make_config):
        names = [stage.name for stage in build_stages(make_config())]

        assert names == list(StageName)

    def test_configure(self, make_config, source_root):
        config = make_config(cmake_generator="Unix Makefiles")
        configure = stages_by_name(config)[StageName.CONFIGURE]

        assert configure.settings_file == config.build_dir / "config.cmake"
        assert configure.settings_file == settings_path(config)
        assert configure.command.argv == ("cmake", str(source_root.resolve()), "-G", "Unix Makefiles")
        assert configure.command.cwd == config.build_dir

    def test_compile_uses_thread_count(self, make_config):
        config = make_config(thread_count=7)
        compile_ = stages_by_name(config)[StageName.COMPILE]

        assert compile_.command.argv[-2:] == ("--parallel", "7")
        assert {a.path.name for a in compile_.required_artifacts} == {
            "libmlc_llm.so", "libtvm_runtime.so"
        }
        assert all(a.kind is ArtifactKind.SHARED_LIBRARY for a in compile_.required_artifacts)

    def test_install_editable_by_default(self, make_config, source_root):
        install = stages_by_name(make_config())[StageName.INSTALL]

        assert install.command.argv == ("python3", "-m", "pip", "install", "-e", ".")
        assert install.command.cwd == source_root.resolve() / "python"

    def test_install_non_editable(self, make_config):
        install = stages_by_name(make_config(editable_install=False))[StageName.INSTALL]

        assert "-e" not in install.command.argv

    def test_validate_runs_help_probe_then_import_probe(self, make_config):
        validate = stages_by_name(make_config(package_name="mypkg"))[StageName.VALIDATE]

        help_probe, import_probe = validate.commands
        assert help_probe.argv == ("mlc_llm", "chat", "-h")
        assert help_probe.expect_output is None
        assert import_probe.argv[:2] == ("python3", "-c")
        assert "import mypkg" in import_probe.argv[2]
        assert import_probe.expect_output == IMPORT_SUCCESS_MARKER

    def test_test_stage(self, make_config):
        test = stages_by_name(make_config(run_tests=True))[StageName.TEST]

        argv = test.command.argv
        assert argv[:4] == ("python3", "-m", "pytest", "-v")
        assert argv[argv.index("-m", 3) + 1] == "unittest"
        assert "--ignore=tests/python/integration/" in argv
        assert "--ignore=tests/python/op/" in argv

    def test_optional_stages_follow_toggles(self, make_config):
        disabled = make_config()
        enabled = make_config(run_tests=True, build_wheel=True)

        for name in (StageName.TEST, StageName.PACKAGE):
            assert stages_by_name(disabled)[name].should_skip(disabled)
            assert not stages_by_name(enabled)[name].should_skip(enabled)

        for name in (StageName.CONFIGURE, StageName.COMPILE, StageName.INSTALL, StageName.VALIDATE):
            assert not stages_by_name(disabled)[name].should_skip(disabled)

    def test_package_builds_into_staging(self, make_config, tmp_path):
        config = make_config(build_wheel=True, output_dir=tmp_path / "dist")
        package = stages_by_name(config)[StageName.PACKAGE]

        argv = package.command.argv
        assert argv[1:6] == ("-m", "pip", "wheel", "--no-deps", "-w")
        assert argv[6] == str(config.build_dir / "wheelhouse")
        [artifact] = package.required_artifacts
        assert artifact.path == (tmp_path / "dist").resolve()
        assert artifact.kind is ArtifactKind.WHEEL_PACKAGE

    def test_building_stages_has_no_side_effects(self, make_config):
        config = make_config()

        build_stages(config)

        assert not config.build_dir.exists()
