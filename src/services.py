"""Expected and actual tag documents for a repository."""

import logging

from documents import TagDocument
from tags import filter_mutable_tags, filter_semantic_tags, filter_tags
from versions import derive_virtual_tags, map_to_canonical_versions

logger = logging.getLogger(__name__)


def expected_document(repository_url, client, tag_filter=None):
    all_tags = filter_tags(client.list_tags(repository_url), tag_filter)
    semantic_tags = filter_semantic_tags(all_tags)
    logger.info('>>> %d semantic version tags', len(semantic_tags))

    result = derive_virtual_tags(semantic_tags)
    return TagDocument.build(repository_url, result.digests, result.canonical_versions)


def actual_document(repository_url, client, tag_filter=None, strict_canonical=False):
    all_tags = filter_tags(client.list_tags(repository_url), tag_filter)
    mutable_tags = filter_mutable_tags(all_tags)
    semantic_tags = filter_semantic_tags(all_tags)
    logger.info('>>> %d mutable tags, %d semantic version tags', len(mutable_tags), len(semantic_tags))

    canonical_versions = map_to_canonical_versions(mutable_tags, semantic_tags, strict=strict_canonical)
    return TagDocument.build(repository_url, mutable_tags, canonical_versions)
