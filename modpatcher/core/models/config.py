"""
AppConfig — tool settings loaded from modpatcher.yml.

Everything has a default, so running without a config file works for
the stock target. The YAML only needs the keys it wants to change.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from modpatcher.core.domain.version import parse_version


class FileCopySpec(BaseModel):
    """A place on the device where plain files of some types are copied.

    ``destination`` may contain ``{app_id}``.
    """

    name: str
    name_plural: str = ""
    extensions: list[str] = Field(default_factory=list)
    destination: str

    @field_validator("extensions")
    @classmethod
    def _normalize_extensions(cls, value: list[str]) -> list[str]:
        return [ext.lower().lstrip(".") for ext in value if ext]


class ToolchainSpec(BaseModel):
    """Argument templates for the external APK toolchain.

    ``{input}`` and ``{output}`` are replaced with package paths,
    ``{package_id}`` with the id of the app being patched.
    """

    patch_command: list[str] = Field(
        default_factory=lambda: ["java", "-jar", "apk-patcher.jar", "{input}", "{output}"]
    )
    sign_command: list[str] = Field(
        default_factory=lambda: [
            "apksigner", "sign",
            "--ks", "debug.keystore", "--ks-pass", "pass:android",
            "--out", "{output}", "{input}",
        ]
    )


class AppConfig(BaseModel):
    """Root settings model."""

    model_config = ConfigDict(validate_assignment=True)

    version: int = 1

    # ── Target ───────────────────────────────────────────────────
    app_id: str = "com.beatgames.beatsaber"
    min_app_version: str = "1.16.4"

    # ── Remote data ──────────────────────────────────────────────
    core_mod_manifests: dict[str, str] = Field(
        default_factory=lambda: {
            "com.beatgames.beatsaber": (
                "https://beatmods.wgzeyu.com/github/BMBFresources/"
                "com.beatgames.beatsaber/core-mods.json"
            ),
        }
    )
    mirror_url: str | None = None
    mirror_refresh_interval: float = 300.0
    update_url: str | None = None
    http_timeout: float | None = None

    # ── Device ───────────────────────────────────────────────────
    adb_path: str = "adb"
    device_mods_dir: str = "/sdcard/Android/data/{app_id}/files/mods"
    device_libs_dir: str = "/sdcard/Android/data/{app_id}/files/libs"

    # ── Package inspection ───────────────────────────────────────
    modded_tags: list[str] = Field(default_factory=lambda: ["modded.json", "BMBF.modded"])
    tamper_markers: list[str] = Field(default_factory=list)

    # ── Tools and destinations ───────────────────────────────────
    toolchain: ToolchainSpec = Field(default_factory=ToolchainSpec)
    file_copies: list[FileCopySpec] = Field(default_factory=list)

    @field_validator("min_app_version")
    @classmethod
    def _check_min_app_version(cls, value: str) -> str:
        parse_version(value)
        return value

    def mods_dir(self) -> str:
        return self.device_mods_dir.format(app_id=self.app_id)

    def libs_dir(self) -> str:
        return self.device_libs_dir.format(app_id=self.app_id)

    def core_mod_manifest_url(self) -> str | None:
        """Manifest URL for the configured app, or None if none is known."""
        return self.core_mod_manifests.get(self.app_id)
