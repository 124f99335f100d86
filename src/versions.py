"""Semantic version handling and derivation of the expected mutable tags."""

import logging
from dataclasses import dataclass, field

from errors import CanonicalVersionLookupError
from tags import LATEST, semantic_version_re, sort_tags_descending

logger = logging.getLogger(__name__)


def parse_version(text):
    m = semantic_version_re.fullmatch(text) if isinstance(text, str) else None
    if not m:
        return None
    return {
        'major': m.group(1),
        'minor': m.group(2),
        'patch': m.group(3),
    }


def str_version(v):
    return v['major'] + '.' + v['minor'] + '.' + v['patch']


def version_key(v):
    return (int(v['major']), int(v['minor']), int(v['patch']))


def compare_version(v1, v2):
    if not v1 and not v2:
        return 0
    if not v1:
        return -1
    if not v2:
        return 1

    k1 = version_key(v1)
    k2 = version_key(v2)
    if k1 < k2:
        return -1
    elif k1 > k2:
        return 1

    # versions are equal
    return 0


@dataclass(frozen=True)
class VirtualTagResult:
    """Expected mutable tags: digest and canonical version per tag.

    Both mappings always share the same keys.
    """

    digests: dict = field(default_factory=dict)
    canonical_versions: dict = field(default_factory=dict)

    def to_dict(self):
        return {
            'digests': dict(self.digests),
            'canonical_versions': dict(self.canonical_versions),
        }


def derive_virtual_tags(semantic_tags):
    """Compute the mutable tags that should exist for ``semantic_tags``.

    ``semantic_tags`` maps strict ``major.minor.patch`` versions to digests.
    In a single pass the highest version overall, per major and per
    major.minor is tracked; they become ``latest``, ``M`` and ``M.N``.
    Keys that are not semantic versions are skipped.
    """
    latest = None
    latest_per_major = {}
    latest_per_minor = {}

    for text in semantic_tags:
        v = parse_version(text)
        if v is None:
            logger.warning('>>> Ignoring tag which is not a semantic version: %s', text)
            continue

        if compare_version(v, latest) > 0:
            latest = v

        major = v['major']
        if compare_version(v, latest_per_major.get(major)) > 0:
            latest_per_major[major] = v

        minor = v['major'] + '.' + v['minor']
        if compare_version(v, latest_per_minor.get(minor)) > 0:
            latest_per_minor[minor] = v

    resolved = {}
    if latest:
        resolved[LATEST] = latest
    resolved.update(latest_per_major)
    resolved.update(latest_per_minor)

    digests = {}
    canonical_versions = {}
    for tag in sort_tags_descending(resolved):
        version = str_version(resolved[tag])
        digests[tag] = semantic_tags[version]
        canonical_versions[tag] = version

    return VirtualTagResult(digests=digests, canonical_versions=canonical_versions)


def map_to_canonical_versions(mutable_tags, semantic_tags, strict=False):
    """Find the semantic version each published mutable tag currently serves.

    Matching is by digest. If several semantic tags share a digest the
    highest version wins. Tags without a match are left out, or raise
    CanonicalVersionLookupError when ``strict`` is set.
    """
    by_digest = {}
    for text, digest in semantic_tags.items():
        v = parse_version(text)
        if v is None:
            continue
        if compare_version(v, by_digest.get(digest)) > 0:
            by_digest[digest] = v

    canonical_versions = {}
    for tag, digest in mutable_tags.items():
        v = by_digest.get(digest)
        if v is None:
            if strict:
                raise CanonicalVersionLookupError(
                    "No semantic version tag found for mutable tag '%s' (%s)" % (tag, digest))
            logger.info('>>> No semantic version found for %s -> %s', tag, digest)
            continue
        canonical_versions[tag] = str_version(v)

    return canonical_versions
