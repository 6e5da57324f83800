# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Tests for backend-specific build settings generation."""

import pytest

from mlcbuild.pipeline import Backend, ConfigGenerator, ConfigurationError, GeneratedSettings
from mlcbuild.pipeline.generator import ACCELERATOR_FLAGS, BASELINE_FLAGS
from mlcbuild.settings import BuildConfiguration


class TestGeneratedSettings:
    """Test the ordered settings container."""

    def test_later_entries_win(self):
        settings = GeneratedSettings([("USE_CUDA", False), ("USE_CUDA", True)])

        assert settings["USE_CUDA"] == "ON"
        assert len(settings) == 1
        assert settings.entries == (("USE_CUDA", "OFF"), ("USE_CUDA", "ON"))

    def test_render_one_set_per_entry(self):
        settings = GeneratedSettings([("TVM_SOURCE_DIR", "3rdparty/tvm"), ("USE_METAL", True)])

        assert settings.render() == "set(TVM_SOURCE_DIR 3rdparty/tvm)\nset(USE_METAL ON)\n"

    def test_write_skips_identical_content(self, tmp_path):
        settings = GeneratedSettings([("USE_VULKAN", True)])
        path = tmp_path / "build" / "config.cmake"

        assert settings.write(path) is True
        mtime = path.stat().st_mtime_ns

        assert settings.write(path) is False
        assert path.stat().st_mtime_ns == mtime
        assert path.read_text() == "set(USE_VULKAN ON)\n"

    def test_write_replaces_changed_content(self, tmp_path):
        path = tmp_path / "config.cmake"
        GeneratedSettings([("USE_VULKAN", True)]).write(path)

        assert GeneratedSettings([("USE_CUDA", True)]).write(path) is True
        assert path.read_text() == "set(USE_CUDA ON)\n"


class TestConfigGenerator:
    """Test settings derived from a configuration."""

    def test_same_configuration_renders_identically(self, make_config):
        config = make_config(backend="cuda")

        first = ConfigGenerator().generate(config)
        second = ConfigGenerator().generate(config)

        assert first == second
        assert first.render() == second.render()
        assert first.digest() == second.digest()

    def test_baseline_layout(self, make_config):
        settings = ConfigGenerator().generate(make_config(backend="vulkan"))
        names = [name for name, _ in settings.entries]

        assert names[:2] == ["TVM_SOURCE_DIR", "CMAKE_BUILD_TYPE"]
        assert names[2:2 + len(BASELINE_FLAGS)] == list(BASELINE_FLAGS)
        assert settings["TVM_SOURCE_DIR"] == "3rdparty/tvm"
        assert settings["CMAKE_BUILD_TYPE"] == "RelWithDebInfo"

    @pytest.mark.parametrize("backend", Backend.accelerators())
    def test_exactly_one_accelerator_enabled(self, make_config, backend):
        settings = ConfigGenerator().generate(make_config(backend=backend.value))

        assert settings.enabled_accelerators() == [ACCELERATOR_FLAGS[backend]]

    def test_cuda_enables_companion_libraries(self, make_config):
        settings = ConfigGenerator().generate(make_config(backend="cuda"))

        assert settings["USE_CUDA"] == "ON"
        assert settings["USE_CUBLAS"] == "ON"
        assert settings["USE_CUTLASS"] == "ON"
        assert settings["USE_VULKAN"] == "OFF"
        assert settings.render().endswith(
            "set(USE_CUDA ON)\nset(USE_CUBLAS ON)\nset(USE_CUTLASS ON)\n"
        )

    def test_non_cuda_backends_keep_companions_off(self, make_config):
        settings = ConfigGenerator().generate(make_config(backend="rocm"))

        assert settings["USE_CUBLAS"] == "OFF"
        assert settings["USE_CUTLASS"] == "OFF"

    def test_cpu_enables_compatibility_backend(self, make_config):
        settings = ConfigGenerator().generate(make_config(backend="cpu"))

        assert settings.enabled_accelerators() == ["USE_VULKAN"]

    def test_cpu_compatibility_backend_is_configurable(self, make_config):
        settings = ConfigGenerator().generate(
            make_config(backend="cpu", cpu_compat_backend="opencl")
        )

        assert settings.enabled_accelerators() == ["USE_OPENCL"]

    def test_cpu_without_compatibility_backend_is_all_off(self, make_config):
        settings = ConfigGenerator().generate(make_config(backend="cpu", cpu_compat_backend="none"))

        assert settings.enabled_accelerators() == []
        assert all(settings[flag] == "OFF" for flag in BASELINE_FLAGS)

    def test_build_type_is_rendered(self, make_config):
        settings = ConfigGenerator().generate(make_config(build_type="release"))

        assert "set(CMAKE_BUILD_TYPE Release)\n" in settings.render()

    def test_unknown_backend_names_the_value(self):
        # Bypasses validation the way a programmatic caller could
        config = BuildConfiguration.model_construct(backend="tpu")

        with pytest.raises(ConfigurationError) as exc_info:
            ConfigGenerator().generate(config)

        assert "tpu" in exc_info.value.message
        assert exc_info.value.exit_code == 78
