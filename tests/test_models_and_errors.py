import os
from pathlib import Path

import pytest

from imagelink.errors import (
    ConfigurationError,
    ErrorCode,
    ExecutionError,
    PrivatizationError,
    ToolchainNotFoundError,
)
from imagelink.models import (
    CommandSpec,
    ImageRecipe,
    RecipeBuilder,
    default_image_path,
    is_name_only,
    normalize_outname,
)
from imagelink.platforms import LinuxPlatform, MacOSPlatform, WindowsPlatform


def test_error_codes_are_stable_and_machine_readable() -> None:
    errors = [
        ConfigurationError("bad input"),
        ToolchainNotFoundError("no cc"),
        ExecutionError("link failed"),
        PrivatizationError("patchelf failed"),
    ]
    assert [error.code for error in errors] == [
        ErrorCode.CONFIGURATION.value,
        ErrorCode.TOOLCHAIN_NOT_FOUND.value,
        ErrorCode.EXECUTION.value,
        ErrorCode.PRIVATIZATION.value,
    ]


def test_error_renders_hint_and_context() -> None:
    error = ExecutionError(
        "Compilation failed.",
        hint="Check the linker output.",
        context={"returncode": "1", "stderr": ""},
    )
    rendered = str(error)
    assert rendered.startswith("Compilation failed.")
    assert "Hint: Check the linker output." in rendered
    assert "returncode: 1" in rendered
    assert "stderr" not in rendered

    assert error.code == "E_EXECUTION"
    assert error.context == {"returncode": "1", "stderr": ""}


@pytest.mark.parametrize(
    ("outname", "expected"),
    [
        ("build/libfoo", "build/libfoo.so"),
        ("build/libfoo.so", "build/libfoo.so"),
        ("libfoo", "libfoo.so"),
    ],
)
def test_shared_outputs_fill_or_keep_platform_extension(outname: str, expected: str) -> None:
    assert normalize_outname("lib", outname, LinuxPlatform()) == expected
    assert normalize_outname("sysimage", outname, LinuxPlatform()) == expected


@pytest.mark.parametrize("outname", ["build/libfoo.dylib", "build/libfoo.so.1", "libfoo.SO"])
def test_shared_outputs_reject_foreign_extension(outname: str) -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        normalize_outname("lib", outname, LinuxPlatform())

    assert "Invalid file extension" in str(excinfo.value)
    assert "'.so'" in str(excinfo.value)


def test_macos_shared_extension_is_dylib() -> None:
    assert normalize_outname("sysimage", "out/sys", MacOSPlatform()) == "out/sys.dylib"


def test_windows_executable_suffix_rule() -> None:
    windows = WindowsPlatform()
    assert normalize_outname("exe", "app", windows) == "app.exe"
    assert normalize_outname("exe", "app.EXE", windows) == "app.EXE"
    with pytest.raises(ConfigurationError):
        normalize_outname("exe", "app.bin", windows)


def test_executables_keep_any_name_on_unix() -> None:
    assert normalize_outname("exe", "app.bin", LinuxPlatform()) == "app.bin"
    assert normalize_outname("exe", "app", MacOSPlatform()) == "app"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("app", True),
        ("sub/dir/app", False),
        ("/abs/app", False),
        ("dir\\app", False),
    ],
)
def test_is_name_only(value: str, expected: bool) -> None:
    assert is_name_only(value) is expected


def test_builder_rejects_second_output_type() -> None:
    builder = RecipeBuilder()
    builder.set_output("lib", "build/libfoo")

    with pytest.raises(ConfigurationError) as excinfo:
        builder.set_output("exe", "app")

    assert "Multiple output types specified" in str(excinfo.value)
    assert builder.output_type == "lib"


def test_builder_rejects_executable_path() -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        RecipeBuilder().set_output("exe", "sub/dir/app")

    assert "expects a name, no path" in str(excinfo.value)


def test_builder_requires_output_and_input() -> None:
    builder = RecipeBuilder()
    builder.set_input("main.jl")
    with pytest.raises(ConfigurationError, match="No output file specified"):
        builder.build(LinuxPlatform())

    builder = RecipeBuilder()
    builder.set_output("exe", "app")
    with pytest.raises(ConfigurationError, match="No input file specified"):
        builder.build(LinuxPlatform())


def test_builder_validates_extension_before_any_stage_runs() -> None:
    builder = RecipeBuilder()
    builder.set_output("lib", "build/libfoo.dll")
    builder.set_input("main.jl")

    with pytest.raises(ConfigurationError):
        builder.build(LinuxPlatform())


def test_builder_produces_frozen_recipes() -> None:
    builder = RecipeBuilder()
    builder.set_output("lib", "build/libfoo")
    builder.set_input("lib.jl")
    builder.cc_flags.append("-O2")

    image, link, bundle = builder.build(LinuxPlatform())

    assert image.output_type == "lib"
    assert image.img_path == str(Path("build") / ".imagelink" / "libfoo.a")
    assert link.outname == "build/libfoo.so"
    assert link.rpath is None
    assert link.cc_flags == ("-O2",)
    assert link.image_recipe is image
    assert bundle.link_recipe is link
    assert bundle.requested is False
    with pytest.raises(AttributeError):
        link.outname = "other"  # type: ignore[misc]


def test_builder_bundle_defaults_follow_platform_layout() -> None:
    builder = RecipeBuilder()
    builder.set_output("exe", "app")
    builder.set_input("app.jl")
    builder.bundle = True

    _, link, bundle = builder.build(LinuxPlatform())
    assert link.rpath == "../lib"
    assert bundle.libdir == "lib"
    assert bundle.output_dir == os.path.abspath("")

    _, link, bundle = builder.build(WindowsPlatform())
    assert link.outname == "app.exe"
    assert link.rpath == "bin"
    assert bundle.libdir == "bin"


def test_archive_outputs_use_requested_path_as_image() -> None:
    assert default_image_path("o", "build/img.a") == "build/img.a"
    assert default_image_path("exe", "app") == str(Path(".imagelink") / "app.a")


def test_trim_enabled_ignores_no_mode() -> None:
    assert ImageRecipe(output_type="exe", trim_mode="safe").trim_enabled
    assert not ImageRecipe(output_type="exe", trim_mode="no").trim_enabled
    assert not ImageRecipe(output_type="exe").trim_enabled


def test_command_spec_render_quotes_arguments() -> None:
    command = CommandSpec(argv=("cc", "-Wl,-rpath,$ORIGIN/../lib"))
    assert command.extend("-o", "my app").render() == "cc '-Wl,-rpath,$ORIGIN/../lib' -o 'my app'"
