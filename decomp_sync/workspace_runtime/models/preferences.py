"""Diff preference schema.

Views render these properties as a settings form; the service forwards the
subset that differs from the defaults to the diff engine as ``-c key=value``
flags.  Ids of grouped properties are dotted (``arm.archVersion``), matching
the flattened shape produced by ``PreferenceStore``.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, Field

PropertyValue = bool | str | int | float
ConfigProperties = dict[str, PropertyValue]

SETTINGS_SECTION = "objdiff"

BINARY_PATH_PROPERTY = "binaryPath"
"""Extension-level setting: path to the diff engine binary.  Not part of the diff schema."""

EXTENSION_PROPERTIES = frozenset({BINARY_PATH_PROPERTY})


class ChoiceItem(BaseModel):
    value: str
    name: str
    description: str | None = None


class ConfigPropertyBoolean(BaseModel):
    type: Literal["boolean"] = "boolean"
    id: str
    name: str
    description: str = ""
    default: bool


class ConfigPropertyChoice(BaseModel):
    type: Literal["choice"] = "choice"
    id: str
    name: str
    description: str = ""
    default: str
    items: list[ChoiceItem]

    def allows(self, value: object) -> bool:
        return any(item.value == value for item in self.items)


ConfigProperty = Annotated[ConfigPropertyBoolean | ConfigPropertyChoice, Field(discriminator="type")]


class ConfigPropertyGroup(BaseModel):
    id: str
    name: str
    properties: list[str]


class ConfigSchema(BaseModel):
    properties: list[ConfigProperty]
    groups: list[ConfigPropertyGroup]

    def get(self, property_id: str) -> ConfigPropertyBoolean | ConfigPropertyChoice | None:
        for prop in self.properties:
            if prop.id == property_id:
                return prop
        return None

    def defaults(self) -> ConfigProperties:
        return {prop.id: prop.default for prop in self.properties}


def _choice(value: str, name: str, description: str | None = None) -> ChoiceItem:
    return ChoiceItem(value=value, name=name, description=description)


CONFIG_SCHEMA = ConfigSchema(
    properties=[
        ConfigPropertyChoice(
            id="functionRelocDiffs",
            name="Function relocation diffs",
            description="How relocation targets will be diffed in the function view.",
            default="name_address",
            items=[
                _choice("none", "None"),
                _choice("name_address", "Name or address"),
                _choice("data_value", "Data value"),
                _choice("all", "Name or address, data value"),
            ],
        ),
        ConfigPropertyBoolean(
            id="spaceBetweenArgs",
            name="Space between args",
            description="Adds a space between arguments in the diff output.",
            default=True,
        ),
        ConfigPropertyBoolean(
            id="combineDataSections",
            name="Combine data sections",
            description="Combines data sections with equal names.",
            default=False,
        ),
        ConfigPropertyBoolean(
            id="combineTextSections",
            name="Combine text sections",
            description="Combines all text sections into one.",
            default=False,
        ),
        ConfigPropertyBoolean(
            id="ppc.calculatePoolRelocations",
            name="Calculate pooled data references",
            description="Display pooled data references in functions as fake relocations.",
            default=True,
        ),
        ConfigPropertyBoolean(
            id="ppc.analyzeDataFlow",
            name="Analyze data flow",
            description="Display values of registers propagated through functions.",
            default=False,
        ),
        ConfigPropertyChoice(
            id="mips.abi",
            name="ABI",
            description="MIPS ABI to use for disassembly.",
            default="auto",
            items=[
                _choice("auto", "Auto"),
                _choice("o32", "O32"),
                _choice("n32", "N32"),
                _choice("n64", "N64"),
            ],
        ),
        ConfigPropertyChoice(
            id="mips.instrCategory",
            name="Instruction category",
            description="MIPS instruction category to use for disassembly.",
            default="auto",
            items=[
                _choice("auto", "Auto"),
                _choice("cpu", "CPU"),
                _choice("rsp", "RSP (N64)"),
                _choice("r3000gte", "R3000 GTE (PS1)"),
                _choice("r4000allegrex", "R4000 ALLEGREX (PSP)"),
                _choice("r5900", "R5900 EE (PS2)"),
            ],
        ),
        ConfigPropertyBoolean(
            id="mips.registerPrefix",
            name="Register '$' prefix",
            description="Display MIPS register names with a '$' prefix.",
            default=False,
        ),
        ConfigPropertyChoice(
            id="x86.formatter",
            name="Format",
            description="x86 disassembly syntax.",
            default="intel",
            items=[
                _choice("intel", "Intel"),
                _choice("gas", "AT&T"),
                _choice("nasm", "NASM"),
                _choice("masm", "MASM"),
            ],
        ),
        ConfigPropertyChoice(
            id="arm.archVersion",
            name="Architecture version",
            description="ARM architecture version to use for disassembly.",
            default="auto",
            items=[
                _choice("auto", "Auto"),
                _choice("v4t", "ARMv4T (GBA)"),
                _choice("v5te", "ARMv5TE (DS)"),
                _choice("v6k", "ARMv6K (3DS)"),
            ],
        ),
        ConfigPropertyBoolean(
            id="arm.unifiedSyntax",
            name="Unified syntax",
            description="Disassemble as unified assembly language (UAL).",
            default=False,
        ),
        ConfigPropertyBoolean(
            id="arm.avRegisters",
            name="Use A/V registers",
            description="Display R0-R3 as A1-A4 and R4-R11 as V1-V8.",
            default=False,
        ),
        ConfigPropertyChoice(
            id="arm.r9Usage",
            name="Display R9 as",
            default="generalPurpose",
            items=[
                _choice("generalPurpose", "R9 or V6", "Use R9 as a general-purpose register."),
                _choice("sb", "SB (static base)", "Used for position-independent data (PID)."),
                _choice("tr", "TR (TLS register)", "Used for thread-local storage."),
            ],
        ),
        ConfigPropertyBoolean(
            id="arm.slUsage",
            name="Display R10 as SL",
            description="Used for explicit stack limits.",
            default=False,
        ),
        ConfigPropertyBoolean(
            id="arm.fpUsage",
            name="Display R11 as FP",
            description="Used for frame pointers.",
            default=False,
        ),
        ConfigPropertyBoolean(
            id="arm.ipUsage",
            name="Display R12 as IP",
            description="Used for interworking and long branches.",
            default=False,
        ),
    ],
    groups=[
        ConfigPropertyGroup(
            id="general",
            name="General",
            properties=["functionRelocDiffs", "spaceBetweenArgs", "combineDataSections", "combineTextSections"],
        ),
        ConfigPropertyGroup(
            id="ppc",
            name="PowerPC",
            properties=["ppc.calculatePoolRelocations", "ppc.analyzeDataFlow"],
        ),
        ConfigPropertyGroup(
            id="mips",
            name="MIPS",
            properties=["mips.abi", "mips.instrCategory", "mips.registerPrefix"],
        ),
        ConfigPropertyGroup(id="x86", name="x86", properties=["x86.formatter"]),
        ConfigPropertyGroup(
            id="arm",
            name="ARM",
            properties=[
                "arm.archVersion",
                "arm.unifiedSyntax",
                "arm.avRegisters",
                "arm.r9Usage",
                "arm.slUsage",
                "arm.fpUsage",
                "arm.ipUsage",
            ],
        ),
    ],
)


def get_modified_config_properties(
    properties: ConfigProperties,
    schema: ConfigSchema = CONFIG_SCHEMA,
) -> ConfigProperties:
    """Return the schema properties whose value differs from the declared default.

    Keys outside the schema (``binaryPath`` and anything unknown) are never
    forwarded.
    """
    modified: ConfigProperties = {}
    for prop in schema.properties:
        if prop.id not in properties:
            continue
        value = properties[prop.id]
        if value != prop.default:
            modified[prop.id] = value
    return modified
