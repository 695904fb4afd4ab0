"""Discovery search over conversation and fade listings."""


def _field(item, name: str):
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def filter_items(items, query: str | None) -> list:
    """
    Keep the items whose name, description or any topic contains `query`,
    ignoring case. A blank query keeps everything.
    """
    items = list(items)
    if not query or not query.strip():
        return items

    needle = query.lower()

    def matches(item) -> bool:
        name = _field(item, "name") or ""
        description = _field(item, "description") or ""
        topics = _field(item, "topics") or []
        return (
            needle in name.lower()
            or needle in description.lower()
            or any(needle in topic.lower() for topic in topics)
        )

    return [item for item in items if matches(item)]
