"""Tag classification and ordering.

The two predicates are the single definition of what counts as a semantic
version tag (``1.2.3``) and a mutable tag (``latest``, ``1``, ``1.2``).
Version derivation, diffing, the document models and the command line
all go through this module.
"""

import re

from errors import InputValidationError

LATEST = 'latest'

DIGEST_PATTERN = r'^sha256:[a-f0-9]{64}$'
SEMANTIC_VERSION_PATTERN = r'^(0|[1-9][0-9]*)\.(0|[1-9][0-9]*)\.(0|[1-9][0-9]*)$'
MUTABLE_TAG_PATTERN = r'^(latest|0|[1-9][0-9]*|(0|[1-9][0-9]*)\.(0|[1-9][0-9]*))$'

semantic_version_re = re.compile(SEMANTIC_VERSION_PATTERN)
mutable_tag_re = re.compile(MUTABLE_TAG_PATTERN)

# ordering only, also accepts leading zeros
_numeric_tag_re = re.compile(r'^([0-9]+)(?:\.([0-9]+))?$')


def is_semantic_version(tag):
    return isinstance(tag, str) and semantic_version_re.fullmatch(tag) is not None


def is_mutable_tag(tag):
    return isinstance(tag, str) and mutable_tag_re.fullmatch(tag) is not None


def filter_semantic_tags(tags):
    return {t: d for t, d in tags.items() if is_semantic_version(t)}


def filter_mutable_tags(tags):
    return {t: d for t, d in tags.items() if is_mutable_tag(t)}


def filter_tags(tags, pattern=None):
    """Keep only the tags matching the user supplied regex (``re.search`` semantics)."""
    if not pattern:
        return dict(tags)
    try:
        regex = re.compile(pattern)
    except re.error as err:
        raise InputValidationError('Invalid filter regex: ' + str(err)) from err
    return {t: d for t, d in tags.items() if regex.search(t)}


def tag_sort_key(tag):
    if tag == LATEST:
        return (0, ())
    m = _numeric_tag_re.fullmatch(tag)
    if m:
        # a major sorts right before its own minors: (-14,) < (-14, -11) < (-14, -10)
        return (1, tuple(-int(p) for p in m.groups() if p is not None))
    return (2, tag)


def sort_tags_descending(tags):
    """Return a copy of ``tags`` ordered for presentation.

    ``latest`` comes first, then every major version in descending order,
    each immediately followed by its ``major.minor`` tags (descending).
    Anything else goes last, alphabetically.
    """
    if not tags:
        return {}
    return {t: tags[t] for t in sorted(tags, key=tag_sort_key)}
