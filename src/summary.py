"""Human readable tables for ``--format summary``."""

from rich.console import Console
from rich.table import Table

console = Console()

REMEDIATION_HINT = ("  docker-tag-equilibrium analyze --expected expected.json --actual actual.json"
                    " --format json | jq '.remediation_plan'")


def short_digest(digest):
    if not digest:
        return 'unknown'
    return digest.split(':')[-1][:12]


def print_tags_summary(document, kind, out=None):
    if out is None:
        out = console
    out.print('Repository: ' + document.repository_name, highlight=False)
    out.print('URL: ' + document.repository_url, highlight=False)
    out.print()

    table = Table(title='%s mutable tags (%d)' % (kind.capitalize(), len(document.digests)))
    table.add_column('Tag', style='cyan')
    table.add_column('Version')
    table.add_column('Digest', style='dim')
    for tag, digest in document.digests.items():
        table.add_row(tag, document.canonical_versions.get(tag, '-'), short_digest(digest))
    out.print(table)


def print_analysis_summary(result, out=None):
    if out is None:
        out = console
    out.print('Repository URL: ' + (result.repository_url or 'unknown'), highlight=False)
    out.print()

    overview = Table(title='Analysis Overview')
    overview.add_column('Metric', style='bold')
    overview.add_column('Count', justify='right')
    overview.add_row('Expected tags', str(result.expected_count))
    overview.add_row('Actual tags', str(result.actual_count))
    overview.add_row('Missing tags', str(len(result.missing_tags)))
    overview.add_row('Mismatched tags', str(len(result.mismatched_tags)))
    overview.add_row('Unexpected tags', str(len(result.unexpected_tags)))
    out.print(overview)
    out.print()

    status = result.status.value.upper().replace('_', ' ')
    if result.status.value == 'perfect':
        out.print('[green]✓ Status: ' + status + '[/green]')
    else:
        out.print('[yellow]⚠ Status: ' + status + '[/yellow]')
    out.print()

    if result.missing_tags:
        table = Table(title='Missing Tags (should be created)')
        table.add_column('Tag', style='cyan')
        table.add_column('Should Point To')
        for tag, digest in result.missing_tags.items():
            table.add_row(tag, short_digest(digest))
        out.print(table)
        out.print()

    if result.mismatched_tags:
        table = Table(title='Mismatched Tags (pointing to wrong version)')
        table.add_column('Tag', style='cyan')
        table.add_column('Expected')
        table.add_column('Actual')
        for tag, mismatch in result.mismatched_tags.items():
            table.add_row(tag, short_digest(mismatch.expected), short_digest(mismatch.actual))
        out.print(table)
        out.print()

    if result.unexpected_tags:
        table = Table(title='Unexpected Tags (should be removed)')
        table.add_column('Tag', style='cyan')
        table.add_column('Currently Points To')
        for tag, digest in result.unexpected_tags.items():
            table.add_row(tag, short_digest(digest))
        out.print(table)
        out.print()

    if result.remediation_plan:
        out.print('To see detailed remediation commands, use:')
        out.print(REMEDIATION_HINT, highlight=False, markup=False)
    else:
        out.print('[green]✓ Registry is in perfect equilibrium![/green]')
