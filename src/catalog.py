"""Conversion between tag documents and the image catalog format."""

from documents import CatalogDocument, TagDocument, validate_document
from errors import InputValidationError


def build_catalog(document):
    missing = [t for t in document.digests if t not in document.canonical_versions]
    if missing:
        raise InputValidationError(
            'Cannot build catalog, no canonical version for tags: ' + ', '.join(missing))

    images = [
        {
            'tag': tag,
            'digest': digest,
            'canonical_version': document.canonical_versions[tag],
        }
        for tag, digest in document.digests.items()
    ]
    return validate_document(CatalogDocument, {
        'repository_url': document.repository_url,
        'repository_name': document.repository_name,
        'images': images,
    }, error_prefix='Catalog schema validation failed')


def reverse_catalog(catalog):
    digests = {}
    canonical_versions = {}
    for image in catalog.images:
        digests[image.tag] = image.digest
        canonical_versions[image.tag] = image.canonical_version

    return validate_document(TagDocument, {
        'repository_url': catalog.repository_url,
        'repository_name': catalog.repository_name,
        'digests': digests,
        'canonical_versions': canonical_versions,
    }, error_prefix='Output validation failed')
