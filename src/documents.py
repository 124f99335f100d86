"""JSON documents read and written by the commands.

TagDocument is the output of ``expected``/``actual`` and the input of
``analyze`` and ``catalog``; CatalogDocument is the ``catalog`` output;
AnalysisOutput describes ``analyze --format json``; RegistryTagsResponse
is what a registry answers on ``/v2/<name>/tags/list``.
"""

from typing import Annotated, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, ValidationError, model_validator

from errors import InputValidationError
from tags import DIGEST_PATTERN, MUTABLE_TAG_PATTERN, SEMANTIC_VERSION_PATTERN, sort_tags_descending

REPOSITORY_URL_PATTERN = r'^[a-zA-Z0-9.-]+(/[a-zA-Z0-9._-]+)*$'
REPOSITORY_NAME_PATTERN = r'^[a-zA-Z0-9._-]+$'

Digest = Annotated[str, StringConstraints(pattern=DIGEST_PATTERN)]
SemanticVersion = Annotated[str, StringConstraints(pattern=SEMANTIC_VERSION_PATTERN)]
MutableTag = Annotated[str, StringConstraints(pattern=MUTABLE_TAG_PATTERN)]
RepositoryUrl = Annotated[str, StringConstraints(min_length=1, pattern=REPOSITORY_URL_PATTERN)]
RepositoryName = Annotated[str, StringConstraints(min_length=1, pattern=REPOSITORY_NAME_PATTERN)]


def repository_name_from_url(repository_url):
    # gcr.io/project-id/apm-inject -> apm-inject
    return repository_url.rstrip('/').split('/')[-1]


class TagDocument(BaseModel):
    """Mutable tags of one repository with their digests and canonical versions."""

    model_config = ConfigDict(extra='forbid', frozen=True)

    repository_url: RepositoryUrl = Field(description="Full repository URL (e.g. 'gcr.io/project-id/image-name')")
    repository_name: RepositoryName = Field(description='Last path segment of the repository URL')
    digests: Dict[MutableTag, Digest] = Field(description='Mutable tag to SHA256 digest')
    canonical_versions: Dict[MutableTag, SemanticVersion] = Field(
        description='Mutable tag to the semantic version it resolves to')

    @model_validator(mode='after')
    def check_canonical_versions_have_digests(self):
        unknown = [t for t in self.canonical_versions if t not in self.digests]
        if unknown:
            raise ValueError('canonical_versions contains tags without digest: ' + ', '.join(unknown))
        return self

    @classmethod
    def build(cls, repository_url, digests, canonical_versions):
        return validate_document(cls, {
            'repository_url': repository_url,
            'repository_name': repository_name_from_url(repository_url),
            'digests': sort_tags_descending(digests),
            'canonical_versions': sort_tags_descending(canonical_versions),
        })


class CatalogImage(BaseModel):
    model_config = ConfigDict(extra='forbid', frozen=True)

    tag: str = Field(description='The mutable tag of the image')
    digest: Digest = Field(description='The full digest of the image')
    canonical_version: SemanticVersion = Field(description='The canonical semantic version for this mutable tag')


class CatalogDocument(BaseModel):
    model_config = ConfigDict(extra='forbid', frozen=True)

    repository_url: RepositoryUrl
    repository_name: RepositoryName
    images: List[CatalogImage] = Field(default_factory=list)


class MismatchEntry(BaseModel):
    model_config = ConfigDict(extra='forbid')

    expected: Digest
    actual: Digest


class RemediationStep(BaseModel):
    model_config = ConfigDict(extra='forbid')

    action: Literal['create_tag', 'update_tag', 'remove_tag']
    tag: str
    digest: Optional[Digest] = None
    old_digest: Optional[Digest] = None
    new_digest: Optional[Digest] = None
    command: Optional[str] = None

    @model_validator(mode='after')
    def check_digest_fields(self):
        if self.action == 'update_tag':
            if self.old_digest is None or self.new_digest is None:
                raise ValueError('update_tag requires old_digest and new_digest')
        elif self.digest is None:
            raise ValueError(self.action + ' requires digest')
        return self


class AnalysisOutput(BaseModel):
    model_config = ConfigDict(extra='forbid')

    repository_url: str
    repository_name: str
    expected_count: int = Field(ge=0)
    actual_count: int = Field(ge=0)
    missing_tags: Dict[str, Digest]
    unexpected_tags: Dict[str, Digest]
    mismatched_tags: Dict[str, MismatchEntry]
    status: Literal['perfect', 'missing_tags', 'mismatched', 'extra_tags']
    remediation_plan: List[RemediationStep]


class ManifestEntry(BaseModel):
    model_config = ConfigDict(extra='allow')

    tag: List[str] = Field(default_factory=list)


class RegistryTagsResponse(BaseModel):
    """Docker Registry v2 tags/list response.

    ``manifest`` is a non-standard extension (served by GCR among others)
    mapping digests to their tags. Registries that follow the plain v2 API
    only return ``name`` and ``tags``.
    """

    model_config = ConfigDict(extra='allow')

    name: str
    tags: Optional[List[str]] = None
    manifest: Dict[Digest, ManifestEntry] = Field(default_factory=dict)


def format_validation_error(err, error_prefix):
    lines = []
    for e in err.errors():
        location = '/' + '/'.join(str(p) for p in e['loc'])
        lines.append(location + ': ' + e['msg'])
    return error_prefix + ':\n' + '\n'.join(lines)


def validate_document(model, data, error_prefix='Schema validation failed'):
    try:
        return model.model_validate(data)
    except ValidationError as err:
        raise InputValidationError(format_validation_error(err, error_prefix)) from err
