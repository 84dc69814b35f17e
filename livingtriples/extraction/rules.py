"""
Rule Catalogue for Living Triples.

Rules are data. Each PatternRule binds a case-insensitive lexical trigger to
a semantic category, a fixed subject label and a predicate. The catalogue is
loaded once at startup, either the built-in table below or a JSON file.

JSON catalogue format (a list of rule objects):

    [
      {
        "name": "sacred_geometry",
        "category": "mathematical",
        "trigger": "golden[\\\\s_-]?ratio|fibonacci",
        "subject": "Sacred Geometry System",
        "predicate": "calculates",
        "baseWeight": 0.9,
        "categoryBonus": 0.08,
        "highValue": true
      }
    ]
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterator, Optional

from ..domain import MalformedRule, RuleCatalogueError

logger = logging.getLogger(__name__)


# =============================================================================
# CATEGORY TABLE
# =============================================================================

# Category importance bonus added to a rule's base weight
CATEGORY_BONUSES = {
    "core_system": 0.10,
    "mathematical": 0.08,
    "consciousness": 0.08,
    "economic": 0.06,
    "knowledge": 0.06,
    "academic": 0.04,
    "architecture": 0.04,
    "personality": 0.02,
    "visualization": 0.02,
    "structure": 0.0,
}

# Categories whose triples get the high-value survival multiplier
HIGH_VALUE_CATEGORIES = frozenset({"core_system", "mathematical", "consciousness"})

MIN_BASE_WEIGHT = 0.7
MAX_BASE_WEIGHT = 0.95


# =============================================================================
# PATTERN RULE
# =============================================================================

@lru_cache(maxsize=256)
def _compile_trigger(trigger: str) -> re.Pattern:
    return re.compile(trigger, re.IGNORECASE)


@dataclass(frozen=True)
class PatternRule:
    """
    A single lexical extraction rule.

    The trigger is compiled lazily, so a broken expression only surfaces
    when the rule is applied and is reported as MalformedRule for that
    document.
    """
    name: str
    category: str
    trigger: str
    subject: str
    predicate: str
    base_weight: float
    category_bonus: float = 0.0
    high_value: bool = False

    def __post_init__(self):
        if not MIN_BASE_WEIGHT <= self.base_weight <= MAX_BASE_WEIGHT:
            raise RuleCatalogueError(
                f"Rule '{self.name}' base_weight {self.base_weight} is outside "
                f"[{MIN_BASE_WEIGHT}, {MAX_BASE_WEIGHT}]"
            )
        if not self.subject or not self.predicate:
            raise RuleCatalogueError(f"Rule '{self.name}' needs a subject and a predicate")

    def compile(self) -> re.Pattern:
        """
        Raises:
            MalformedRule: If the trigger is not a valid regular expression
        """
        try:
            return _compile_trigger(self.trigger)
        except re.error as e:
            raise MalformedRule(f"Trigger does not compile: {e}", rule=self.name)

    def find_matches(self, body: str) -> list[str]:
        """All non-empty matched texts in body, in order of appearance."""
        pattern = self.compile()
        return [m.group(0) for m in pattern.finditer(body) if m.group(0)]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "category": self.category,
            "trigger": self.trigger,
            "subject": self.subject,
            "predicate": self.predicate,
            "baseWeight": self.base_weight,
            "categoryBonus": self.category_bonus,
            "highValue": self.high_value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PatternRule:
        """
        Raises:
            RuleCatalogueError: If required keys are missing or mistyped
        """
        try:
            category = str(data["category"])
            return cls(
                name=str(data.get("name") or category),
                category=category,
                trigger=str(data["trigger"]),
                subject=str(data["subject"]),
                predicate=str(data["predicate"]),
                base_weight=float(data["baseWeight"]),
                category_bonus=float(
                    data.get("categoryBonus", CATEGORY_BONUSES.get(category, 0.0))
                ),
                high_value=bool(data.get("highValue", category in HIGH_VALUE_CATEGORIES)),
            )
        except KeyError as e:
            raise RuleCatalogueError(f"Rule is missing required key {e}")
        except (TypeError, ValueError) as e:
            raise RuleCatalogueError(f"Rule has an invalid value: {e}")


def make_rule(
    name: str,
    category: str,
    trigger: str,
    subject: str,
    predicate: str,
    base_weight: float,
) -> PatternRule:
    """Build a rule whose bonus and high-value flag come from the category table."""
    return PatternRule(
        name=name,
        category=category,
        trigger=trigger,
        subject=subject,
        predicate=predicate,
        base_weight=base_weight,
        category_bonus=CATEGORY_BONUSES.get(category, 0.0),
        high_value=category in HIGH_VALUE_CATEGORIES,
    )


# =============================================================================
# BUILT-IN CATALOGUE
# =============================================================================

DEFAULT_RULES: tuple[PatternRule, ...] = (
    make_rule(
        "core_system", "core_system",
        r"universal[\s_-]?life[\s_-]?protocol|\bULP\b|anarcho[\s_-]?syndicalis[mt]|p2p[\s_-]?marketplace",
        "Universal Life Protocol", "implements", 0.95,
    ),
    make_rule(
        "economic_system", "economic",
        r"attention[\s_-]?tokens?|\bDPO\b|decentrali[sz]ed[\s_-]?offers?|consciousness[\s_-]?based[\s_-]?value",
        "Economic System", "uses", 0.9,
    ),
    make_rule(
        "sacred_geometry", "mathematical",
        r"golden[\s_-]?ratio|\bphi\b|sacred[\s_-]?geometry|fibonacci|flower[\s_-]?of[\s_-]?life|platonic[\s_-]?solids?",
        "Sacred Geometry System", "calculates", 0.9,
    ),
    make_rule(
        "living_knowledge", "knowledge",
        r"living[\s_-]?knowledge|knowledge[\s_-]?trie|conway'?s?[\s_-]?game[\s_-]?of[\s_-]?life|survival[\s_-]?fitness|evolution[\s_-]?rules?",
        "Living Knowledge System", "evolves_through", 0.85,
    ),
    make_rule(
        "consciousness", "consciousness",
        r"meta[\s_-]?observer|conscious[\s_-]?ai|fano[\s_-]?plane|geometric[\s_-]?inference|dimensional[\s_-]?consciousness",
        "Consciousness System", "implements", 0.9,
    ),
    make_rule(
        "personality", "personality",
        r"myers[\s_-]?briggs|\bMBTI\b|personality[\s_-]?profiling|cognitive[\s_-]?functions?|social[\s_-]?harmony",
        "Personality System", "uses", 0.8,
    ),
    make_rule(
        "visualization", "visualization",
        r"hypergraphs?|visuali[sz]ation|graph[\s_-]?theory|network[\s_-]?topology",
        "Visualization System", "renders", 0.8,
    ),
    make_rule(
        "academic", "academic",
        r"\bthesis\b|manuscript|doctoral|academic[\s_-]?framework",
        "Academic Framework", "documents", 0.85,
    ),
    make_rule(
        "architecture", "architecture",
        r"system[\s_-]?integration|architecture|infrastructure",
        "System Architecture", "defines", 0.8,
    ),
)


# =============================================================================
# CATALOGUE
# =============================================================================

@dataclass(frozen=True)
class RuleCatalogue:
    """An ordered, immutable set of rules with unique names."""
    rules: tuple[PatternRule, ...]

    def __post_init__(self):
        names = [rule.name for rule in self.rules]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise RuleCatalogueError(f"Duplicate rule names: {', '.join(duplicates)}")

    def __iter__(self) -> Iterator[PatternRule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    @property
    def categories(self) -> list[str]:
        return sorted({rule.category for rule in self.rules})

    def by_category(self, category: str) -> list[PatternRule]:
        return [rule for rule in self.rules if rule.category == category]

    def get(self, name: str) -> Optional[PatternRule]:
        for rule in self.rules:
            if rule.name == name:
                return rule
        return None

    @classmethod
    def default(cls) -> RuleCatalogue:
        return cls(rules=DEFAULT_RULES)

    @classmethod
    def from_dicts(cls, entries: list[dict[str, Any]]) -> RuleCatalogue:
        if not isinstance(entries, list):
            raise RuleCatalogueError("Rule catalogue must be a JSON list of rule objects")
        if not entries:
            raise RuleCatalogueError("Rule catalogue is empty")
        rules = []
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict):
                raise RuleCatalogueError(f"Rule #{index} is not an object")
            rules.append(PatternRule.from_dict(entry))
        return cls(rules=tuple(rules))

    @classmethod
    def from_json(cls, path: Path | str) -> RuleCatalogue:
        """
        Load and validate a catalogue file.

        Every trigger is compiled here so a broken file fails at startup.

        Raises:
            RuleCatalogueError: If the file is unreadable or invalid
        """
        path = Path(path)
        try:
            entries = json.loads(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise RuleCatalogueError(f"Cannot read rule catalogue {path}: {e}")
        except json.JSONDecodeError as e:
            raise RuleCatalogueError(f"Rule catalogue {path} is not valid JSON: {e}")

        catalogue = cls.from_dicts(entries)
        for rule in catalogue:
            try:
                rule.compile()
            except MalformedRule as e:
                raise RuleCatalogueError(f"Rule '{rule.name}': {e.reason}")

        logger.info("Loaded %d rules from %s", len(catalogue), path)
        return catalogue


def load_catalogue(rules_path: Optional[Path | str] = None) -> RuleCatalogue:
    """The catalogue named in configuration, or the built-in one."""
    if rules_path is None:
        return RuleCatalogue.default()
    return RuleCatalogue.from_json(rules_path)
