"""Named patterns shared by the location extractor and the query engine."""

from __future__ import annotations

import re


_NUMBER = r"[+-]?(?:[0-9]*[.])?[0-9]+"
_TAG_CHARS = r"[\w/\-]"

# "lat,lng", used by front matter string values
COORDINATES = re.compile(rf"^\s*(?P<lat>{_NUMBER})\s*,\s*(?P<lng>{_NUMBER})\s*$")

# `location: lat,lng` (legacy inline syntax, no name)
INLINE_LOCATION_OLD_SYNTAX = re.compile(
    rf"`location:\s*\[?(?P<lat>{_NUMBER})\s*,\s*(?P<lng>{_NUMBER})\]?`"
)

# [name](geo:lat,lng) tag:a tag:b
INLINE_LOCATION_WITH_TAGS = re.compile(
    rf"\[(?P<name>[^\]\n]*)\]\(geo:(?P<lat>{_NUMBER}),\s*(?P<lng>{_NUMBER})\)"
    rf"(?:[ \t]+(?P<tags>tag:{_TAG_CHARS}+(?:[ \t,]+tag:{_TAG_CHARS}+)*))?"
)

INLINE_TAG_IN_NOTE = re.compile(rf"tag:(?P<tag>{_TAG_CHARS}+)")

# ```geojson tag:a
# {...}
# ```
INLINE_GEOJSON_BLOCK = re.compile(
    rf"^```geojson(?:[ \t]+(?P<tags>tag:{_TAG_CHARS}+(?:[ \t,]+tag:{_TAG_CHARS}+)*))?[ \t]*\r?\n"
    r"(?P<payload>.*?)^```[ \t]*$",
    re.MULTILINE | re.DOTALL,
)

QUERY_KEYS = ("tag", "path", "name", "linkedto", "linkedfrom", "lines")

# key:value or key:"value with spaces"
QUERY_PREDICATE = re.compile(
    r"(?<![\w\"])(?P<key>" + "|".join(QUERY_KEYS) + r"):"
    r"(?:\"(?P<quoted>[^\"]*)\"|(?P<bare>[^\s()\"]*))"
)

LINES_RANGE = re.compile(r"^(?P<from>[0-9]+)-(?P<to>[0-9]+)$")

QUERY_WORD = re.compile(r"[^\s()\"]+")

QUERY_OPERATORS = ("AND", "OR", "NOT")
