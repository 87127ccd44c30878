"""Keyword catalog for component derivation and replacement-action detection.

Maps canonical component names to the keywords (English and French, matched
accent-folded) that identify them in part names, failure locations and
engineer comments, plus the action terms that indicate a part was replaced.
"""

from __future__ import annotations

from pathlib import Path

import yaml

from liftdiag.normalization.text import contains_term, fold_text


class ConfigurationError(Exception):
    """Keyword configuration file is invalid."""

    pass


_DEFAULT_COMPONENTS: dict[str, list[str]] = {
    "Power Supply": [
        "power supply", "ups", "battery", "batteries", "batterie", "alimentation",
        "psu", "accumulator", "accumulateur",
    ],
    "Door Contact": ["door contact", "contact de porte", "contact porte", "door switch"],
    "Door Detector": [
        "light curtain", "memco", "photocell", "door detector", "rideau", "cellule",
    ],
    "Door Operator": [
        "door operator", "door motor", "door drive", "operateur de porte",
        "operateur porte", "boitier de porte", "coffret de porte",
    ],
    "Landing Door": ["landing door", "landing doors", "porte paliere", "portes palieres"],
    "Door Lock": ["door lock", "lock", "locks", "serrure", "verrou"],
    "Door": ["door", "doors", "porte", "portes"],
    "Roller": ["roller", "rollers", "galet", "galets"],
    "Guide Shoes": ["guide shoe", "guide shoes", "shoe plate", "coulisseau", "coulisseaux"],
    "Controller": [
        "controller", "control board", "control panel", "pcb", "carte", "armoire",
        "inverter", "variateur",
    ],
    "Motor": ["motor", "moteur", "traction machine"],
    "Brake": ["brake", "brakes", "frein"],
    "Ropes": ["rope", "ropes", "cable", "cables", "cable de traction"],
    "Push Button": ["push button", "button", "buttons", "bouton", "boutons"],
    "Display": ["display", "indicator", "afficheur"],
    "Remote Alarm": ["remote alarm", "alarm", "emergency phone", "intercom", "telealarme"],
    "Lighting": ["lighting", "light", "lamp", "led", "eclairage"],
    "Sensor": ["sensor", "sensors", "capteur", "encoder"],
    "Hydraulic": ["hydraulic", "valve", "pump", "vanne", "pompe", "huile"],
}

# Completed-action forms only: "will change next visit" is not a replacement
_DEFAULT_ACTION_TERMS: list[str] = [
    # English
    "replaced", "replacement", "fitted", "supplied", "installed", "changed",
    "swapped", "renewed",
    # French
    "remplace", "remplacee", "remplaces", "remplacement", "changement", "pose",
    "posee", "installe", "installee", "fourni", "fournie", "monte",
]


class KeywordCatalog:
    """Component keywords and replacement action terms."""

    def __init__(self, config_path: Path | None = None) -> None:
        """Initialize catalog with optional config file.

        Args:
            config_path: Path to keywords.yaml (built-in defaults when missing)

        Raises:
            ConfigurationError: If the YAML file is invalid
        """
        self.components: dict[str, list[str]] = {}
        self.action_terms: list[str] = []

        if config_path and config_path.exists():
            self._load_config(config_path)
        else:
            self._load_defaults()

        # Longest keyword first so "door contact" wins over "door"
        self._ranked: list[tuple[str, str]] = sorted(
            (
                (fold_text(keyword), component)
                for component, keywords in self.components.items()
                for keyword in [component, *keywords]
            ),
            key=lambda pair: -len(pair[0]),
        )
        self._single_words: frozenset[str] = frozenset(
            keyword for keyword, _ in self._ranked if keyword and " " not in keyword
        )

    def _load_config(self, config_path: Path) -> None:
        """Load keywords from YAML config.

        Expected shape::

            components:
              Power Supply: [power supply, ups, battery]
            action_terms: [replaced, fitted]
        """
        try:
            with config_path.open(encoding="utf-8") as f:
                config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}")

        components = config.get("components")
        if not isinstance(components, dict) or not components:
            raise ConfigurationError(f"No components defined in {config_path}")

        for name, keywords in components.items():
            if not isinstance(keywords, list):
                raise ConfigurationError(f"Keywords for {name!r} must be a list")
            self.components[str(name)] = [str(k) for k in keywords]

        self.action_terms = [str(t) for t in config.get("action_terms", _DEFAULT_ACTION_TERMS)]

    def _load_defaults(self) -> None:
        """Load default keyword mappings."""
        self.components = {name: list(words) for name, words in _DEFAULT_COMPONENTS.items()}
        self.action_terms = list(_DEFAULT_ACTION_TERMS)

    def match_component(self, text: str | None) -> str | None:
        """Canonical component whose longest keyword appears in text."""
        folded = fold_text(text)
        if not folded:
            return None
        for keyword, component in self._ranked:
            if contains_term(folded, keyword):
                return component
        return None

    def expansion(self, component: str) -> list[str]:
        """All keywords of a canonical component, including its own name."""
        return [component, *self.components.get(component, [])]

    def is_keyword(self, token: str) -> bool:
        """Whether a folded single-word token is itself a component keyword."""
        return token in self._single_words

    def action_terms_in(self, folded_text: str) -> list[str]:
        return [term for term in self.action_terms if contains_term(folded_text, term)]
