"""Comparison of expected and published mutable tags.

diff() classifies every tag as missing, unexpected, mismatched or in
equilibrium and attaches the remediation plan that would bring the
registry back to equilibrium.
"""

import dataclasses
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Optional

from errors import RepositoryMismatchError
from tags import sort_tags_descending

logger = logging.getLogger(__name__)

IDENTITY_URL = 'url'
IDENTITY_NAME = 'name'
IDENTITY_CHECKS = {
    IDENTITY_URL: ('repository_url', 'Repository URLs'),
    IDENTITY_NAME: ('repository_name', 'Repository names'),
}

IMAGES_COMMAND = 'gcloud container images'


class DiffStatus(str, Enum):
    PERFECT = 'perfect'
    MISSING_TAGS = 'missing_tags'
    MISMATCHED = 'mismatched'
    EXTRA_TAGS = 'extra_tags'


@dataclass(frozen=True)
class DigestMismatch:
    expected: str
    actual: str

    def to_dict(self):
        return {'expected': self.expected, 'actual': self.actual}


@dataclass(frozen=True)
class CreateTag:
    action: ClassVar[str] = 'create_tag'

    tag: str
    digest: str
    command: Optional[str] = None

    def to_dict(self):
        return _action_dict(self, digest=self.digest)


@dataclass(frozen=True)
class UpdateTag:
    action: ClassVar[str] = 'update_tag'

    tag: str
    old_digest: str
    new_digest: str
    command: Optional[str] = None

    def to_dict(self):
        return _action_dict(self, old_digest=self.old_digest, new_digest=self.new_digest)


@dataclass(frozen=True)
class RemoveTag:
    action: ClassVar[str] = 'remove_tag'

    tag: str
    digest: str
    command: Optional[str] = None

    def to_dict(self):
        return _action_dict(self, digest=self.digest)


def _action_dict(action, **digests):
    result = {'action': action.action, 'tag': action.tag}
    result.update(digests)
    if action.command is not None:
        result['command'] = action.command
    return result


@dataclass(frozen=True)
class DiffResult:
    missing_tags: dict
    unexpected_tags: dict
    mismatched_tags: dict
    status: DiffStatus
    remediation_plan: list = field(default_factory=list)
    expected_count: int = 0
    actual_count: int = 0
    repository_url: Optional[str] = None
    repository_name: Optional[str] = None

    def to_dict(self):
        result = {}
        if self.repository_url is not None:
            result['repository_url'] = self.repository_url
        if self.repository_name is not None:
            result['repository_name'] = self.repository_name
        result.update({
            'expected_count': self.expected_count,
            'actual_count': self.actual_count,
            'missing_tags': dict(self.missing_tags),
            'unexpected_tags': dict(self.unexpected_tags),
            'mismatched_tags': {t: m.to_dict() for t, m in self.mismatched_tags.items()},
            'status': self.status.value,
            'remediation_plan': [a.to_dict() for a in self.remediation_plan],
        })
        return result


def _split_repository(tag_set):
    # plain mappings carry no repository identity
    if isinstance(tag_set, Mapping):
        return tag_set, None
    return tag_set.digests, tag_set


def check_repository_identity(expected, actual, identity_check=IDENTITY_URL):
    if identity_check not in IDENTITY_CHECKS:
        raise ValueError('Unknown repository identity check: ' + str(identity_check))
    attribute, label = IDENTITY_CHECKS[identity_check]
    expected_identity = getattr(expected, attribute)
    actual_identity = getattr(actual, attribute)
    if expected_identity != actual_identity:
        raise RepositoryMismatchError(
            "%s do not match: expected '%s', actual '%s'" % (label, expected_identity, actual_identity))


def find_missing_tags(expected, actual):
    return sort_tags_descending({t: d for t, d in expected.items() if t not in actual})


def find_unexpected_tags(expected, actual):
    return sort_tags_descending({t: d for t, d in actual.items() if t not in expected})


def find_mismatched_tags(expected, actual):
    mismatched = {
        t: DigestMismatch(expected=d, actual=actual[t])
        for t, d in expected.items()
        if t in actual and actual[t] != d
    }
    return sort_tags_descending(mismatched)


def determine_status(expected, actual, missing, unexpected, mismatched):
    # first match wins: mismatched, then missing, then extra
    if dict(expected) == dict(actual):
        return DiffStatus.PERFECT
    if mismatched:
        return DiffStatus.MISMATCHED
    if missing:
        return DiffStatus.MISSING_TAGS
    if unexpected:
        return DiffStatus.EXTRA_TAGS
    return DiffStatus.PERFECT


def add_tag_command(repository_url, digest, tag):
    return IMAGES_COMMAND + ' add-tag ' + repository_url + '@' + digest + ' ' + repository_url + ':' + tag


def untag_command(repository_url, tag):
    return IMAGES_COMMAND + ' untag ' + repository_url + ':' + tag


def build_remediation_plan(diff_result, repository_url=None):
    """List the registry mutations that restore equilibrium.

    Creates come first, then updates, then removals. Without a
    ``repository_url`` the actions carry no command.
    """
    plan = []

    for tag, digest in diff_result.missing_tags.items():
        command = add_tag_command(repository_url, digest, tag) if repository_url else None
        plan.append(CreateTag(tag=tag, digest=digest, command=command))

    for tag, mismatch in diff_result.mismatched_tags.items():
        command = add_tag_command(repository_url, mismatch.expected, tag) if repository_url else None
        plan.append(UpdateTag(tag=tag, old_digest=mismatch.actual, new_digest=mismatch.expected, command=command))

    for tag, digest in diff_result.unexpected_tags.items():
        command = untag_command(repository_url, tag) if repository_url else None
        plan.append(RemoveTag(tag=tag, digest=digest, command=command))

    return plan


def diff(expected, actual, identity_check=IDENTITY_URL):
    """Compare expected against actual mutable tags.

    Both arguments are either tag -> digest mappings or documents with
    ``repository_url``, ``repository_name`` and ``digests``. When both
    are documents their repository identity (URL or name, see
    ``identity_check``) must agree, otherwise RepositoryMismatchError is
    raised before anything is compared.
    """
    expected_tags, expected_repository = _split_repository(expected)
    actual_tags, actual_repository = _split_repository(actual)
    if expected_repository is not None and actual_repository is not None:
        check_repository_identity(expected_repository, actual_repository, identity_check)

    missing = find_missing_tags(expected_tags, actual_tags)
    unexpected = find_unexpected_tags(expected_tags, actual_tags)
    mismatched = find_mismatched_tags(expected_tags, actual_tags)

    repository = expected_repository if expected_repository is not None else actual_repository
    result = DiffResult(
        missing_tags=missing,
        unexpected_tags=unexpected,
        mismatched_tags=mismatched,
        status=determine_status(expected_tags, actual_tags, missing, unexpected, mismatched),
        expected_count=len(expected_tags),
        actual_count=len(actual_tags),
        repository_url=repository.repository_url if repository is not None else None,
        repository_name=repository.repository_name if repository is not None else None,
    )
    logger.info('>>> %d missing, %d mismatched, %d unexpected tags: %s',
                len(missing), len(mismatched), len(unexpected), result.status.value)

    return dataclasses.replace(result, remediation_plan=build_remediation_plan(result, result.repository_url))
