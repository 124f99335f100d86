#!/usr/bin/env python3

import argparse
import json
import logging
import os
import sys

from rich.console import Console
from rich.logging import RichHandler

import summary
from catalog import build_catalog, reverse_catalog
from differ import IDENTITY_CHECKS, IDENTITY_URL, diff
from documents import AnalysisOutput, CatalogDocument, TagDocument, validate_document
from errors import EquilibriumError, InputValidationError
from registry_client import DEFAULT_TIMEOUT, RegistryClient
from services import actual_document, expected_document

__version__ = '1.0.0'

logger = logging.getLogger('docker-tag-equilibrium')

FORMATS = ['json', 'summary']

parser = argparse.ArgumentParser(
    prog='docker-tag-equilibrium',
    description='Check that the mutable tags of a container repository (latest, 1, 1.2) '
                'point to the newest matching semantic version tag.')
parser.add_argument('-v', '--verbose', action='count', default=0, help='Log progress to stderr (-vv for debug output).')
parser.add_argument('--registry-token', type=str, help='Bearer token for the registry (skips the token challenge).')
parser.add_argument('--timeout', type=float, default=DEFAULT_TIMEOUT, help='Registry request timeout in seconds.')
subparsers = parser.add_subparsers(dest='command', metavar='COMMAND')
subparsers.required = True

expected_parser = subparsers.add_parser('expected', help='Output the mutable tags that should exist.')
expected_parser.add_argument('repository_url', help='Full repository URL, e.g. gcr.io/project-id/image-name.')
expected_parser.add_argument('--format', choices=FORMATS, default='json', help='Output format.')
expected_parser.add_argument('-f', '--filter', type=str, help='A regex to filter the tags to process.')

actual_parser = subparsers.add_parser('actual', help='Output the mutable tags that are published.')
actual_parser.add_argument('repository_url', help='Full repository URL, e.g. gcr.io/project-id/image-name.')
actual_parser.add_argument('--format', choices=FORMATS, default='json', help='Output format.')
actual_parser.add_argument('-f', '--filter', type=str, help='A regex to filter the tags to process.')
actual_parser.add_argument('--strict-canonical', action='store_true',
                           help='Fail when a mutable tag matches no semantic version tag.')

analyze_parser = subparsers.add_parser('analyze', help='Compare expected and actual tags and plan the remediation.')
analyze_parser.add_argument('--expected', type=str, required=True, help='Expected tags JSON file.')
analyze_parser.add_argument('--actual', type=str, required=True, help='Actual tags JSON file.')
analyze_parser.add_argument('--format', choices=FORMATS, default='summary', help='Output format.')
analyze_parser.add_argument('--identity-check', choices=sorted(IDENTITY_CHECKS), default=IDENTITY_URL,
                            help='Which repository field must match between both files.')

catalog_parser = subparsers.add_parser('catalog', help='Convert a tags document to catalog format.')
catalog_parser.add_argument('file', nargs='?', help='Tags JSON file (reads stdin when omitted).')

uncatalog_parser = subparsers.add_parser('uncatalog', help='Convert a catalog back to a tags document.')
uncatalog_parser.add_argument('file', nargs='?', help='Catalog JSON file (reads stdin when omitted).')

version_parser = subparsers.add_parser('version', help='Show version information.')

args = None


def parse_arguments(argv=None):
    return parser.parse_args(argv)


def setup_logging(verbose):
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format='%(message)s',
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def print_json(data):
    print(json.dumps(data, indent=2))


def read_input(file_path, usage_message):
    if file_path:
        if not os.path.isfile(file_path):
            raise InputValidationError('File not found: ' + file_path)
        try:
            with open(file_path, encoding='utf-8') as reader:
                return reader.read().strip()
        except (OSError, UnicodeDecodeError) as err:
            raise InputValidationError('Cannot read ' + file_path + ': ' + str(err)) from err

    try:
        content = sys.stdin.read().strip()
    except (OSError, UnicodeDecodeError) as err:
        raise InputValidationError('Cannot read standard input: ' + str(err)) from err
    if not content:
        raise InputValidationError(usage_message)
    return content


def parse_json(content, context='input'):
    try:
        return json.loads(content)
    except ValueError as err:
        raise InputValidationError('Invalid JSON ' + context + ': ' + str(err)) from err


def load_tag_document(file_path, error_prefix):
    content = read_input(file_path, 'No input provided')
    data = parse_json(content, 'in ' + file_path)
    return validate_document(TagDocument, data, error_prefix=error_prefix)


def output_tag_document(document, kind):
    if args.format == 'json':
        print_json(document.model_dump())
    else:
        summary.print_tags_summary(document, kind)


def registry_client():
    return RegistryClient(token=args.registry_token, timeout=args.timeout)


def expected_command():
    document = expected_document(args.repository_url, registry_client(), tag_filter=args.filter)
    output_tag_document(document, 'expected')


def actual_command():
    document = actual_document(args.repository_url, registry_client(), tag_filter=args.filter,
                               strict_canonical=args.strict_canonical)
    output_tag_document(document, 'actual')


def analyze_command():
    expected = load_tag_document(args.expected, 'Expected data schema validation failed')
    actual = load_tag_document(args.actual, 'Actual data schema validation failed')

    result = diff(expected, actual, identity_check=args.identity_check)
    output = result.to_dict()
    validate_document(AnalysisOutput, output, error_prefix='Analyzer output schema validation failed')

    if args.format == 'json':
        print_json(output)
    else:
        summary.print_analysis_summary(result)


def catalog_command():
    content = read_input(args.file, 'No input provided. Use: docker-tag-equilibrium expected REPOSITORY_URL | docker-tag-equilibrium catalog')
    document = validate_document(TagDocument, parse_json(content))
    print_json(build_catalog(document).model_dump())


def uncatalog_command():
    content = read_input(args.file, 'No input provided. Use: docker-tag-equilibrium catalog FILE | docker-tag-equilibrium uncatalog')
    catalog = validate_document(CatalogDocument, parse_json(content), error_prefix='Catalog schema validation failed')
    print_json(reverse_catalog(catalog).model_dump())


def version_command():
    print('docker-tag-equilibrium v' + __version__)
    print('Container tag validation tool')


COMMANDS = {
    'expected': expected_command,
    'actual': actual_command,
    'analyze': analyze_command,
    'catalog': catalog_command,
    'uncatalog': uncatalog_command,
    'version': version_command,
}


def main(argv=None):
    global args
    args = parse_arguments(argv)
    setup_logging(args.verbose)

    try:
        COMMANDS[args.command]()
    except EquilibriumError as err:
        logger.debug('>>> %s failed', args.command, exc_info=True)
        print(str(err), file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
