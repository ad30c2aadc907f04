"""Bundle step: lay out the artifact with the runtime it needs.

Produces ``<output_dir>/bin/<artifact>`` plus ``<output_dir>/<libdir>/`` with
the runtime's shared libraries (private ones under ``<libdir>/<runtime>/``)
and any declared assets. Files whose content is already in place are left
untouched so repeated bundles are cheap and diff-stable.
"""

from __future__ import annotations

import hashlib
import json
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path

import cbor2

from imagelink.errors import ConfigurationError
from imagelink.models import BundleRecipe, BundleResult, LinkResult, normalize_outname
from imagelink.observability import StructuredLogger
from imagelink.platforms import Platform, current_platform
from imagelink.runtime import RuntimeDistribution, default_runtime

MANIFEST_NAME = "bundle.json"
BINARY_MANIFEST_NAME = "bundle.cbor"


@dataclass(frozen=True, slots=True)
class BundleManifest:
    artifact: str
    files: dict[str, str] = field(default_factory=dict)
    schema_version: int = 1

    def to_json(self, path: str | Path | None = None) -> str:
        encoded = json.dumps(self._payload(), indent=2, sort_keys=True) + "\n"
        if path is not None:
            Path(path).write_text(encoded, encoding="utf-8")
        return encoded

    def to_cbor(self, path: str | Path | None = None) -> bytes:
        encoded = cbor2.dumps(self._payload(), canonical=True)
        if path is not None:
            Path(path).write_bytes(encoded)
        return encoded

    @classmethod
    def from_placed(cls, root: Path, artifact: Path, placed: list[Path]) -> BundleManifest:
        """Describe the files the bundle step placed under *root*.

        Anything else that happens to live in *root* (sources, VCS metadata)
        is left out. Dangling symlinks have no digest and are skipped.
        """
        files: dict[str, str] = {}
        for path in placed:
            if path.is_file():
                files[path.relative_to(root).as_posix()] = _sha256(path)
        return cls(artifact=artifact.relative_to(root).as_posix(), files=files)

    def _payload(self) -> dict[str, object]:
        return {
            "schema_version": self.schema_version,
            "artifact": self.artifact,
            "files": dict(sorted(self.files.items())),
        }


def bundle(
    recipe: BundleRecipe,
    link_result: LinkResult | None = None,
    *,
    platform: Platform | None = None,
    runtime: RuntimeDistribution | None = None,
    logger: StructuredLogger | None = None,
) -> BundleResult | None:
    """Populate ``recipe.output_dir``; returns ``None`` when no bundle was requested."""
    if not recipe.requested:
        return None
    assert recipe.output_dir is not None
    platform = platform or current_platform()
    runtime = runtime or default_runtime()
    logger = logger or StructuredLogger()
    verbose = recipe.link_recipe.image_recipe.verbose

    if link_result is not None:
        artifact_src = link_result.outname
    else:
        link_recipe = recipe.link_recipe
        artifact_src = Path(
            normalize_outname(link_recipe.image_recipe.output_type, link_recipe.outname, platform)
        )
    if not artifact_src.is_file():
        raise ConfigurationError(
            "Linked artifact not found; nothing to bundle.",
            hint="Run the link step before bundling.",
            context={"artifact": str(artifact_src)},
        )

    output_dir = Path(recipe.output_dir)
    bindir = output_dir / "bin"
    libdir = output_dir / recipe.libdir
    private_dir = libdir / runtime.name
    copied: list[Path] = []
    unchanged: list[Path] = []

    def place(src: Path, dst: Path) -> None:
        if _sync_file(src, dst):
            copied.append(dst)
        else:
            unchanged.append(dst)

    artifact_dst = bindir / artifact_src.name
    place(artifact_src, artifact_dst)

    for src in _shared_libraries(platform.runtime_library_dir(runtime), platform):
        place(src, libdir / src.name)
    for src in _shared_libraries(runtime.private_libdir, platform):
        place(src, private_dir / src.name)

    for asset in recipe.assets:
        asset_path = Path(asset)
        if asset_path.is_dir():
            for src in sorted(asset_path.rglob("*")):
                if src.is_file():
                    place(src, libdir / asset_path.name / src.relative_to(asset_path))
        elif asset_path.is_file():
            place(asset_path, libdir / asset_path.name)
        else:
            raise ConfigurationError(
                "Declared bundle asset does not exist.",
                context={"asset": asset},
            )

    manifest_path = output_dir / MANIFEST_NAME
    binary_manifest_path = output_dir / BINARY_MANIFEST_NAME
    manifest = BundleManifest.from_placed(output_dir, artifact_dst, sorted(copied + unchanged))
    encoded = manifest.to_json()
    if (
        not manifest_path.exists()
        or not binary_manifest_path.exists()
        or manifest_path.read_text(encoding="utf-8") != encoded
    ):
        manifest.to_json(manifest_path)
        manifest.to_cbor(binary_manifest_path)

    if verbose:
        logger.log(
            operation="bundle",
            stage="bundle",
            artifact=str(artifact_dst),
            message=(
                f"Bundled into {output_dir}: {len(copied)} copied, {len(unchanged)} unchanged"
            ),
            extra={"copied": [str(p) for p in copied]},
        )

    return BundleResult(
        output_dir=output_dir,
        bindir=bindir,
        libdir=libdir,
        artifact=artifact_dst,
        copied=tuple(copied),
        unchanged=tuple(unchanged),
        manifest_path=manifest_path,
    )


def _shared_libraries(directory: Path, platform: Platform) -> list[Path]:
    if not directory.is_dir():
        return []
    return sorted(
        path
        for path in directory.glob(platform.shared_library_glob)
        if path.is_file() or path.is_symlink()
    )


def _sync_file(src: Path, dst: Path) -> bool:
    """Copy *src* to *dst* unless *dst* already holds the same thing."""
    dst.parent.mkdir(parents=True, exist_ok=True)
    if src.is_symlink():
        target = os.readlink(src)
        if dst.is_symlink() and os.readlink(dst) == target:
            return False
        if dst.exists() or dst.is_symlink():
            dst.unlink()
        os.symlink(target, dst)
        return True

    if dst.is_file() and not dst.is_symlink():
        if dst.samefile(src):
            return False
        if dst.stat().st_size == src.stat().st_size and _sha256(dst) == _sha256(src):
            return False
    if dst.is_symlink():
        dst.unlink()
    shutil.copy2(src, dst)
    return True


def _sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1 << 16), b""):
            digest.update(chunk)
    return digest.hexdigest()


__all__ = ["BINARY_MANIFEST_NAME", "BundleManifest", "MANIFEST_NAME", "bundle"]
