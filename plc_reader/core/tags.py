from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

DEFAULT_NAMESPACE = "ns=1;s="


def node_address_for(name: str, namespace: str = DEFAULT_NAMESPACE) -> str:
    """Derive the string node id of a tag from its name."""
    return f"{namespace}{name}"


class Tag(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    node_address: str

    @classmethod
    def from_name(cls, name: str, namespace: str = DEFAULT_NAMESPACE) -> "Tag":
        return cls(name=name, node_address=node_address_for(name, namespace))


class TagRegistry:
    """Ordered, read-only table of the tags the reader acquires."""

    def __init__(self, tags: Iterable[Tag]):
        self._tags: Tuple[Tag, ...] = tuple(tags)
        self._by_name: Dict[str, Tag] = {}
        self._by_address: Dict[str, Tag] = {}
        for tag in self._tags:
            if tag.name in self._by_name:
                raise ValueError(f"Duplicate tag name: {tag.name}")
            self._by_name[tag.name] = tag
            self._by_address[tag.node_address] = tag

    @classmethod
    def from_names(cls, names: Iterable[str], namespace: str = DEFAULT_NAMESPACE) -> "TagRegistry":
        return cls(Tag.from_name(name, namespace) for name in names)

    def __iter__(self) -> Iterator[Tag]:
        return iter(self._tags)

    def __len__(self) -> int:
        return len(self._tags)

    def by_name(self, name: str) -> Optional[Tag]:
        return self._by_name.get(name)

    def by_address(self, node_address: str) -> Optional[Tag]:
        return self._by_address.get(node_address)

    def names(self) -> List[str]:
        return [tag.name for tag in self._tags]
