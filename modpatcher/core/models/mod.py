"""
Mod models — archive manifests, registry entries and core-mod requirements.

Three shapes of the same concept:

    ModManifest   what a ``.qmod`` archive declares about itself (mod.json)
    Mod           what the registry knows: identity + installed state
    CoreModEntry  what the remote manifest requires for an app version
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ModManifest(BaseModel):
    """The ``mod.json`` document inside a mod archive.

    Keys use the archive's camelCase names; Python code reads the
    snake_case attributes.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    schema_version: str = Field(alias="_QPVersion")
    id: str
    name: str = ""
    author: str = ""
    version: str
    package_id: str | None = Field(default=None, alias="packageId")
    package_version: str | None = Field(default=None, alias="packageVersion")
    description: str = ""
    is_library: bool = Field(default=False, alias="isLibrary")
    mod_files: list[str] = Field(default_factory=list, alias="modFiles")
    library_files: list[str] = Field(default_factory=list, alias="libraryFiles")


class Mod(BaseModel):
    """A mod or library known to the registry.

    Two entries are the same mod iff their ``id`` matches; the registry
    never holds two entries with one id. ``package_version`` None means
    the mod does not pin an app version.
    """

    id: str
    name: str = ""
    author: str = ""
    version: str
    package_version: str | None = None
    description: str = ""

    is_library: bool = False
    is_installed: bool = False
    position: int = 0               # load order

    archive: str = ""               # cached archive path (local)
    mod_files: list[str] = Field(default_factory=list)
    library_files: list[str] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.name or self.id

    @classmethod
    def from_manifest(cls, manifest: ModManifest, archive: str = "", position: int = 0) -> Mod:
        """Build a registry entry from a parsed archive manifest."""
        return cls(
            id=manifest.id,
            name=manifest.name,
            author=manifest.author,
            version=manifest.version,
            package_version=manifest.package_version,
            description=manifest.description,
            is_library=manifest.is_library,
            archive=archive,
            position=position,
            mod_files=list(manifest.mod_files),
            library_files=list(manifest.library_files),
        )


class CoreModEntry(BaseModel):
    """One required mod for an app version, as listed in the manifest."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    version: str
    download_link: str | None = Field(default=None, alias="downloadLink")
