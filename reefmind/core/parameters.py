# reefmind/core/parameters.py

from enum import Enum


class Parameter(str, Enum):
    """
    Closed set of water-chemistry parameters the engine knows about.

    Anything outside this set is carried through as-is and classified
    "unknown", never silently mapped onto a registered parameter.
    """

    ALK = "alk"
    CA = "ca"
    MG = "mg"
    PH = "ph"
    TEMP = "temp"
    NO3 = "no3"
    PO4 = "po4"
    ORP = "orp"
    SALINITY = "salinity"

    @classmethod
    def parse(cls, name) -> "Parameter | None":
        if isinstance(name, cls):
            return name
        if not isinstance(name, str):
            return None

        key = name.strip().lower()
        key = _ALIASES.get(key, key)

        try:
            return cls(key)
        except ValueError:
            return None


_ALIASES = {
    "alkalinity": "alk",
    "kh": "alk",
    "dkh": "alk",
    "calcium": "ca",
    "magnesium": "mg",
    "temperature": "temp",
    "nitrate": "no3",
    "phosphate": "po4",
    "sal": "salinity",
}


def canonical_name(name: str) -> str:
    """
    Canonical identifier for a registered parameter, or the name untouched
    when it is not registered.
    """
    param = Parameter.parse(name)
    return param.value if param is not None else name


def require_parameter(name, error_cls, subject: str) -> Parameter:
    """
    Resolve a parameter named in configuration.
    Config must only reference registered parameters.
    """
    param = Parameter.parse(name)
    if param is None:
        raise error_cls(subject, f"unknown parameter '{name}'")
    return param
