from pathlib import Path

from conftest import FakeRunner
from imagelink.compiler import SubprocessImageCompiler, image_command, shim_object_name
from imagelink.models import ImageRecipe
from imagelink.observability import StructuredLogger
from imagelink.platforms import LinuxPlatform
from imagelink.runtime import RuntimeDistribution


def test_image_command_for_trimmed_executable(runtime: RuntimeDistribution) -> None:
    recipe = ImageRecipe(
        output_type="exe",
        file="main.jl",
        img_path="build/.imagelink/app.a",
        cpu_target="native",
        trim_mode="safe",
        add_ccallables=True,
        runtime_args=("--experimental",),
        project="./App",
    )

    command = image_command(recipe, runtime)

    assert command.argv == (
        str(runtime.executable),
        "--startup-file=no",
        "--history-file=no",
        "--project=./App",
        "--cpu-target=native",
        "--trim=safe",
        "--experimental",
        "--output-o",
        "build/.imagelink/app.a",
        "--compile-ccallable",
        "main.jl",
    )


def test_image_command_for_bitcode_omits_disabled_options(runtime: RuntimeDistribution) -> None:
    recipe = ImageRecipe(
        output_type="bc",
        file="main.jl",
        img_path="img.bc",
        trim_mode="no",
        use_loaded_libs=True,
    )

    argv = image_command(recipe, runtime).argv

    assert argv[3:] == ("--output-bc", "img.bc", "--use-loaded-libs", "main.jl")


def test_compile_builds_shim_objects_before_image(
    tmp_path: Path,
    fake_run: FakeRunner,
    runtime: RuntimeDistribution,
    cc_env: dict[str, str],
) -> None:
    logger = StructuredLogger()
    compiler = SubprocessImageCompiler(
        platform=LinuxPlatform(), runtime=runtime, logger=logger, environ=cc_env
    )
    image_dir = tmp_path / "build" / ".imagelink"
    recipe = ImageRecipe(
        output_type="lib",
        file="main.jl",
        img_path=str(image_dir / "libfoo.a"),
        verbose=True,
        c_sources=("shim/init.c",),
        cflags=("-O2",),
        extra_objects=("prebuilt.o",),
    )

    compiled = compiler.compile(recipe)

    init_object = image_dir / shim_object_name("shim/init.c")
    assert compiled.extra_objects == ("prebuilt.o", str(init_object))
    assert compiled.img_path == recipe.img_path
    shim, image = fake_run.calls
    assert shim[:2] == ["cc", "-c"]
    assert shim[-4:] == ["-O2", "shim/init.c", "-o", str(init_object)]
    assert image[0] == str(runtime.executable)
    assert init_object.is_file()
    assert (image_dir / "libfoo.a").is_file()
    messages = [record["message"] for record in logger.records_for_stage("compile")]
    assert len(messages) == 2
    assert all(message.startswith("Running: ") for message in messages)


def test_compile_without_shims_skips_compiler_lookup(
    tmp_path: Path,
    fake_run: FakeRunner,
    runtime: RuntimeDistribution,
) -> None:
    compiler = SubprocessImageCompiler(platform=LinuxPlatform(), runtime=runtime, environ={})
    recipe = ImageRecipe(output_type="o", file="main.jl", img_path=str(tmp_path / "img.a"))

    compiled = compiler.compile(recipe)

    assert compiled == recipe
    assert len(fake_run.calls) == 1
    assert compiler.logger.records == []


def test_sources_with_same_file_name_get_distinct_objects(
    tmp_path: Path,
    fake_run: FakeRunner,
    runtime: RuntimeDistribution,
    cc_env: dict[str, str],
) -> None:
    compiler = SubprocessImageCompiler(platform=LinuxPlatform(), runtime=runtime, environ=cc_env)
    recipe = ImageRecipe(
        output_type="lib",
        file="main.jl",
        img_path=str(tmp_path / "img" / "libfoo.a"),
        c_sources=("a/util.c", "b/util.c"),
    )

    compiled = compiler.compile(recipe)

    first, second = compiled.extra_objects
    assert first != second
    assert Path(first).name.startswith("util-")
    assert Path(second).name.startswith("util-")
    assert Path(first).is_file()
    assert Path(second).is_file()
    outputs = [call[call.index("-o") + 1] for call in fake_run.commands("cc")]
    assert outputs == [first, second]
    assert shim_object_name("a/util.c") == shim_object_name("./a/util.c")
