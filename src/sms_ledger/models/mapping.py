"""User-defined source mapping rules."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class MappingRule:
    """Rule that renames a transaction's channel by substring match.

    Matching is a case-insensitive substring test of each match string
    against the transaction body. Rules are evaluated in the order the
    user defined them; the first matching rule wins.

    Attributes:
        mapping_name: Channel label to assign (e.g. "My HDFC Credit Card").
        match_strings: Ordered, de-duplicated substrings (e.g. "XX810").
        account_type: Account type attached on match (e.g. "credit_card").
    """

    mapping_name: str
    match_strings: tuple[str, ...]
    account_type: str = "other"

    # Lowercased match strings (cached)
    _needles: tuple[str, ...] = field(default=(), init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        """Validate the rule and normalize its match strings."""
        if not self.mapping_name or not self.mapping_name.strip():
            raise ValueError("Mapping name is required")
        if not self.account_type or not str(self.account_type).strip():
            raise ValueError(f"Mapping '{self.mapping_name}' needs an account type")

        seen: set[str] = set()
        cleaned: list[str] = []
        for value in self.match_strings:
            text = str(value).strip()
            # An empty needle would match every body
            if not text or text.lower() in seen:
                continue
            seen.add(text.lower())
            cleaned.append(text)

        if not cleaned:
            raise ValueError(
                f"Mapping '{self.mapping_name}' needs at least one match string"
            )

        # Frozen dataclass: assign through object.__setattr__
        object.__setattr__(self, "match_strings", tuple(cleaned))
        object.__setattr__(self, "_needles", tuple(s.lower() for s in cleaned))

    def match(self, body: str) -> str | None:
        """Return the first match string found in the body, or None.

        Args:
            body: Transaction body (any case).

        Returns:
            The matching string as the user wrote it, or None.
        """
        haystack = body.lower()
        for original, needle in zip(self.match_strings, self._needles):
            if needle in haystack:
                return original
        return None

    def matches(self, body: str) -> bool:
        """Check if any match string occurs in the body (case-insensitive)."""
        return self.match(body) is not None

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "MappingRule":
        """Create a MappingRule from a dictionary (e.g., from YAML config).

        Accepts both the YAML spelling (name/type/match_strings) and the
        stored document spelling (mappingName/accountType/matchStrings).

        Args:
            data: Dictionary containing rule data.

        Returns:
            A new MappingRule instance.

        Raises:
            ValueError: If the name or match strings are missing.
        """
        name = data.get("name", data.get("mappingName", ""))
        account_type = data.get("type", data.get("accountType", "other"))
        raw_strings = data.get("match_strings", data.get("matchStrings", []))
        if isinstance(raw_strings, str):
            raw_strings = [raw_strings]

        return cls(
            mapping_name=str(name or ""),
            match_strings=tuple(str(s) for s in raw_strings),  # type: ignore[union-attr]
            account_type=str(account_type or "other"),
        )

    def to_dict(self) -> dict[str, object]:
        """Serialize for mappings.yaml."""
        return {
            "name": self.mapping_name,
            "type": self.account_type,
            "match_strings": list(self.match_strings),
        }

    def __repr__(self) -> str:
        return (
            f"MappingRule(name={self.mapping_name!r}, "
            f"match_strings={list(self.match_strings)!r}, type={self.account_type!r})"
        )
