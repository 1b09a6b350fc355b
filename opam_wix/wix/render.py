"""Main WiX document renderer.

Maps an AuthoringModel to a WiX v3 ``Product`` document. File sources are
written relative to the working root (``<bundle>\\<file>``), which is the
directory the linker runs from.
"""

from __future__ import annotations

import uuid
import xml.etree.ElementTree as ET
from pathlib import Path

from opam_wix.models import AuthoringModel

WIX_NS = "http://schemas.microsoft.com/wix/2006/wi"

ET.register_namespace("", WIX_NS)

INSTALL_DIR_ID = "INSTALLDIR"
ICON_ID = "AppIcon"
UI_REF = "WixUI_CustomInstallDir"
REGISTRY_KEY = r"Software\opam-wix"


def _el(parent: ET.Element | None, tag: str, **attrs: str) -> ET.Element:
    qualified = f"{{{WIX_NS}}}{tag}"
    if parent is None:
        return ET.Element(qualified, attrs)
    return ET.SubElement(parent, qualified, attrs)


def upgrade_code(model: AuthoringModel) -> str:
    """User supplied package GUID, else one derived from the package name.

    Deriving it from the name keeps upgrades of the same package working
    across versions.
    """
    if model.metadata.package_guid:
        return model.metadata.package_guid
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"opam-wix:{model.metadata.name}")).upper()


def source(model: AuthoringModel, name: str) -> str:
    return f"{model.bundle_name}\\{name}"


def _registry_keypath(component: ET.Element, model: AuthoringModel, name: str, root: str = "HKLM") -> None:
    _el(
        component,
        "RegistryValue",
        Root=root,
        Key=f"{REGISTRY_KEY}\\{model.metadata.name}",
        Name=name,
        Type="integer",
        Value="1",
        KeyPath="yes",
    )


def _files(model: AuthoringModel, install_dir: ET.Element, feature: ET.Element) -> None:
    main = _el(install_dir, "Component", Id="MainExecutable", Guid="*")
    _el(main, "File", Id="MainExecutableFile", Source=source(model, model.executable), KeyPath="yes")
    _el(feature, "ComponentRef", Id="MainExecutable")

    for prefix, names in (("Dll", model.dlls), ("Embedded", model.embedded_files)):
        for index, name in enumerate(names):
            component_id = f"{prefix}_{index}"
            component = _el(install_dir, "Component", Id=component_id, Guid="*")
            _el(component, "File", Id=f"{component_id}_File", Name=name, Source=source(model, name), KeyPath="yes")
            _el(feature, "ComponentRef", Id=component_id)


def _environment(model: AuthoringModel, install_dir: ET.Element, feature: ET.Element) -> None:
    if model.environment:
        component = _el(install_dir, "Component", Id="EnvironmentVariables", Guid="*")
        _registry_keypath(component, model, "environment")
        for index, (name, value) in enumerate(model.environment):
            _el(
                component,
                "Environment",
                Id=f"Env_{index}",
                Name=name,
                Value=value,
                Action="set",
                Permanent="no",
                System="yes",
            )
        _el(feature, "ComponentRef", Id="EnvironmentVariables")

    path = _el(install_dir, "Component", Id="AddToPath", Guid="*")
    _el(path, "Condition").text = "ADDTOPATH"
    _registry_keypath(path, model, "path")
    _el(
        path,
        "Environment",
        Id="PathEnv",
        Name="PATH",
        Value=f"[{INSTALL_DIR_ID}]",
        Part="last",
        Action="set",
        Permanent="no",
        System="yes",
    )
    _el(feature, "ComponentRef", Id="AddToPath")


def _shortcuts(model: AuthoringModel, targetdir: ET.Element, feature: ET.Element) -> None:
    for folder, prop in (("DesktopFolder", "INSTALLSHORTCUTDESKTOP"), ("ProgramMenuFolder", "INSTALLSHORTCUTSTARTMENU")):
        directory = _el(targetdir, "Directory", Id=folder, Name=folder.removesuffix("Folder"))
        component_id = f"{folder}Shortcut"
        component = _el(directory, "Component", Id=component_id, Guid="*")
        _el(component, "Condition").text = prop
        _el(
            component,
            "Shortcut",
            Id=f"{component_id}Link",
            Name=model.product_name,
            Description=model.metadata.description,
            Target=f"[{INSTALL_DIR_ID}]{model.executable}",
            WorkingDirectory=INSTALL_DIR_ID,
            Icon=ICON_ID,
        )
        _registry_keypath(component, model, component_id, root="HKCU")
        _el(feature, "ComponentRef", Id=component_id)


def render(model: AuthoringModel) -> ET.ElementTree:
    """Build the main document tree."""
    meta = model.metadata
    wix = _el(None, "Wix")
    product = _el(
        wix,
        "Product",
        Id="*",
        Name=meta.name,
        Language="1033",
        Version=str(meta.version),
        Manufacturer=meta.manufacturer,
        UpgradeCode=upgrade_code(model),
    )
    _el(
        product,
        "Package",
        InstallerVersion="500",
        Compressed="yes",
        InstallScope="perMachine",
        Description=meta.description,
        Keywords=" ".join(meta.tags),
        Manufacturer=meta.manufacturer,
    )
    _el(product, "MajorUpgrade", DowngradeErrorMessage="A newer version of [ProductName] is already installed.")
    _el(product, "MediaTemplate", EmbedCab="yes")
    _el(product, "Icon", Id=ICON_ID, SourceFile=source(model, model.images.icon))
    _el(product, "Property", Id="ARPPRODUCTICON", Value=ICON_ID)
    _el(product, "Property", Id="WIXUI_INSTALLDIR", Value=INSTALL_DIR_ID)
    _el(product, "Property", Id="INSTALLSHORTCUTSTARTMENU", Value="1")
    _el(product, "WixVariable", Id="WixUIDialogBmp", Value=source(model, model.images.dialog_bmp))
    _el(product, "WixVariable", Id="WixUIBannerBmp", Value=source(model, model.images.banner_bmp))
    _el(product, "UIRef", Id=UI_REF)

    targetdir = _el(product, "Directory", Id="TARGETDIR", Name="SourceDir")
    program_files = _el(targetdir, "Directory", Id="ProgramFilesFolder")
    install_dir = _el(program_files, "Directory", Id=INSTALL_DIR_ID, Name=f"{meta.name} {meta.version}")
    for ids in model.directories:
        _el(install_dir, "Directory", Id=ids.directory_ref_name, Name=ids.base_name)

    feature = _el(product, "Feature", Id="ProductFeature", Title=meta.name, Level="1")
    _files(model, install_dir, feature)
    _environment(model, install_dir, feature)
    _shortcuts(model, targetdir, feature)
    for ids in model.directories:
        _el(feature, "ComponentGroupRef", Id=ids.component_group_name)

    tree = ET.ElementTree(wix)
    ET.indent(tree)
    return tree


def write_wxs(model: AuthoringModel, path: Path) -> Path:
    """Render the model and write it to path."""
    render(model).write(path, encoding="utf-8", xml_declaration=True)
    return path
