"""Keyboard shortcut parsing for the toggle-visibility command.

Shortcuts are written the way users type them ("Ctrl+Shift+S") and matched
against Textual key names ("ctrl+shift+s").

This module is STABLE. Safe for `from` imports.
"""

from dataclasses import dataclass

DEFAULT_SHORTCUT = "Ctrl+Shift+S"

# Textual's canonical modifier order in key names.
MODIFIER_ORDER = ("ctrl", "alt", "shift", "meta")
_ALIASES = {
    "control": "ctrl",
    "ctl": "ctrl",
    "option": "alt",
    "opt": "alt",
    "cmd": "meta",
    "command": "meta",
    "super": "meta",
}


@dataclass(frozen=True)
class Shortcut:
    modifiers: frozenset[str]
    key: str

    @property
    def textual_key(self) -> str:
        """Key name as Textual reports it in Key events."""
        ordered = [m for m in MODIFIER_ORDER if m in self.modifiers]
        return "+".join(ordered + [self.key])

    @property
    def label(self) -> str:
        ordered = [m.capitalize() for m in MODIFIER_ORDER if m in self.modifiers]
        key = self.key.upper() if len(self.key) == 1 else self.key.capitalize()
        return "+".join(ordered + [key])

    def matches(self, key_name: str) -> bool:
        """True if a Textual key name (e.g. "ctrl+shift+s") is this shortcut."""
        try:
            other = parse_shortcut(key_name)
        except ValueError:
            return False
        # Terminals often report shift+letter as the upper-case letter alone.
        raw_key = key_name.rsplit("+", 1)[-1]
        if len(raw_key) == 1 and raw_key.isupper():
            other = Shortcut(other.modifiers | {"shift"}, other.key)
        return other == self


def parse_shortcut(text: str) -> Shortcut:
    """Parse "Ctrl+Shift+S" into modifiers + key. Raises ValueError."""
    parts = [p.strip() for p in str(text or "").split("+")]
    if not parts or not parts[-1]:
        raise ValueError(f"shortcut has no key: {text!r}")
    raw_key = parts[-1]
    modifiers = set()
    for part in parts[:-1]:
        name = _ALIASES.get(part.lower(), part.lower())
        if name not in MODIFIER_ORDER:
            raise ValueError(f"unknown modifier {part!r} in {text!r}")
        modifiers.add(name)
    return Shortcut(frozenset(modifiers), raw_key.lower())
