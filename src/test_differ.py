#!/usr/bin/env python3

import random
import unittest
from types import SimpleNamespace

import differ
from differ import CreateTag, DiffStatus, DigestMismatch, RemoveTag, UpdateTag
from errors import RepositoryMismatchError


def digest(c):
    return 'sha256:' + c * 64


D1 = digest('a')
D2 = digest('b')
D3 = digest('c')

REPO = 'gcr.io/test-project/test-image'


def repository(digests, url=REPO, name='test-image'):
    return SimpleNamespace(repository_url=url, repository_name=name, digests=digests)


class TestDiffScenarios(unittest.TestCase):
    """Test classification of expected against actual tags"""

    def test_perfect(self):
        """Test identical maps are in equilibrium"""
        expected = {'latest': D1, '1': D1}
        result = differ.diff(expected, dict(expected))
        self.assertEqual(result.status, DiffStatus.PERFECT)
        self.assertEqual(result.missing_tags, {})
        self.assertEqual(result.unexpected_tags, {})
        self.assertEqual(result.mismatched_tags, {})
        self.assertEqual(result.remediation_plan, [])

    def test_missing_tags(self):
        """Test tags absent from actual are missing"""
        result = differ.diff({'latest': D1, '1': D1, '1.2': D1}, {'latest': D1})
        self.assertEqual(result.missing_tags, {'1': D1, '1.2': D1})
        self.assertEqual(result.status, DiffStatus.MISSING_TAGS)
        self.assertEqual([a.action for a in result.remediation_plan], ['create_tag', 'create_tag'])

    def test_mismatched_tags(self):
        """Test tags with a different digest are mismatched"""
        result = differ.diff({'1': D1}, {'1': D2})
        self.assertEqual(result.mismatched_tags, {'1': DigestMismatch(expected=D1, actual=D2)})
        self.assertEqual(result.status, DiffStatus.MISMATCHED)
        self.assertEqual(result.remediation_plan, [UpdateTag(tag='1', old_digest=D2, new_digest=D1)])

    def test_unexpected_tags(self):
        """Test tags absent from expected are unexpected"""
        result = differ.diff({'1': D1}, {'1': D1, '2': D2})
        self.assertEqual(result.unexpected_tags, {'2': D2})
        self.assertEqual(result.status, DiffStatus.EXTRA_TAGS)
        self.assertEqual(result.remediation_plan, [RemoveTag(tag='2', digest=D2)])

    def test_mismatch_dominates_missing(self):
        """Test status is mismatched even when tags are missing too"""
        result = differ.diff({'latest': D1, '1': D1, '1.2': D1}, {'latest': D2})
        self.assertEqual(result.status, DiffStatus.MISMATCHED)
        self.assertEqual(len(result.missing_tags), 2)

    def test_missing_dominates_extra(self):
        """Test status is missing_tags when tags are both missing and extra"""
        result = differ.diff({'1': D1}, {'2': D1})
        self.assertEqual(result.status, DiffStatus.MISSING_TAGS)

    def test_both_empty(self):
        """Test two empty maps are perfect"""
        result = differ.diff({}, {})
        self.assertEqual(result.status, DiffStatus.PERFECT)
        self.assertEqual(result.expected_count, 0)
        self.assertEqual(result.actual_count, 0)

    def test_counts(self):
        """Test the number of expected and actual tags is reported"""
        result = differ.diff({'latest': D1, '1': D1, '1.2': D1}, {'latest': D1})
        self.assertEqual(result.expected_count, 3)
        self.assertEqual(result.actual_count, 1)


class TestRemediationPlan(unittest.TestCase):
    """Test the remediation plan"""

    def setUp(self):
        self.expected = {'latest': D1, '1': D1, '1.2': D1, '0': D3}
        self.actual = {'latest': D2, '0': D3, '0.8': D3, 'main': D2}

    def test_order_create_update_remove(self):
        """Test creates come first, then updates, then removals"""
        result = differ.diff(self.expected, self.actual)
        self.assertEqual(result.remediation_plan, [
            CreateTag(tag='1', digest=D1),
            CreateTag(tag='1.2', digest=D1),
            UpdateTag(tag='latest', old_digest=D2, new_digest=D1),
            RemoveTag(tag='0.8', digest=D3),
            RemoveTag(tag='main', digest=D2),
        ])

    def test_no_commands_without_repository(self):
        """Test plain maps produce actions without command"""
        result = differ.diff(self.expected, self.actual)
        for action in result.remediation_plan:
            self.assertIsNone(action.command)
            self.assertNotIn('command', action.to_dict())

    def test_commands_with_repository(self):
        """Test commands are built from the repository URL"""
        result = differ.diff(repository(self.expected), repository(self.actual))
        commands = [a.command for a in result.remediation_plan]
        self.assertEqual(commands[0], 'gcloud container images add-tag ' + REPO + '@' + D1 + ' ' + REPO + ':1')
        self.assertEqual(commands[2], 'gcloud container images add-tag ' + REPO + '@' + D1 + ' ' + REPO + ':latest')
        self.assertEqual(commands[3], 'gcloud container images untag ' + REPO + ':0.8')

    def test_build_remediation_plan_directly(self):
        """Test the plan can be rebuilt for another repository"""
        result = differ.diff({'1': D1}, {})
        plan = differ.build_remediation_plan(result, 'gcr.io/p/other')
        self.assertEqual(plan[0].to_dict(), {
            'action': 'create_tag',
            'tag': '1',
            'digest': D1,
            'command': 'gcloud container images add-tag gcr.io/p/other@' + D1 + ' gcr.io/p/other:1',
        })

    def test_update_action_dict(self):
        """Test update actions carry old and new digest"""
        self.assertEqual(UpdateTag(tag='1', old_digest=D2, new_digest=D1).to_dict(),
                         {'action': 'update_tag', 'tag': '1', 'old_digest': D2, 'new_digest': D1})


class TestRepositoryIdentity(unittest.TestCase):
    """Test refusing to diff unrelated repositories"""

    def test_url_mismatch_raises(self):
        """Test different repository URLs fail fast"""
        expected = repository({'1': D1})
        actual = repository({'1': D1}, url='gcr.io/other-project/test-image')
        with self.assertRaises(RepositoryMismatchError) as ctx:
            differ.diff(expected, actual)
        self.assertIn('Repository URLs do not match', str(ctx.exception))

    def test_name_check_ignores_url(self):
        """Test the name check accepts the same image on another host"""
        expected = repository({'1': D1})
        actual = repository({'1': D1}, url='eu.gcr.io/test-project/test-image')
        result = differ.diff(expected, actual, identity_check=differ.IDENTITY_NAME)
        self.assertEqual(result.status, DiffStatus.PERFECT)

    def test_name_mismatch_raises(self):
        """Test different repository names fail with the name check"""
        expected = repository({'1': D1})
        actual = repository({'1': D1}, name='other-image')
        with self.assertRaises(RepositoryMismatchError) as ctx:
            differ.diff(expected, actual, identity_check=differ.IDENTITY_NAME)
        self.assertIn('Repository names do not match', str(ctx.exception))

    def test_unknown_identity_check(self):
        """Test an unknown identity check is a programming error"""
        with self.assertRaises(ValueError):
            differ.diff(repository({}), repository({}), identity_check='digest')

    def test_result_carries_repository(self):
        """Test the repository identity ends up in the result"""
        result = differ.diff(repository({'1': D1}), repository({}))
        output = result.to_dict()
        self.assertEqual(output['repository_url'], REPO)
        self.assertEqual(output['repository_name'], 'test-image')
        self.assertEqual(output['status'], 'missing_tags')


class TestDiffProperties(unittest.TestCase):
    """Test partition invariants over random inputs"""

    def random_map(self, rng):
        candidates = ['latest', '0', '1', '2', '0.1', '1.0', '1.1', '2.3']
        digests = [D1, D2, D3]
        return {t: rng.choice(digests) for t in candidates if rng.random() < 0.5}

    def test_partitions(self):
        """Test missing, mismatched and common tags partition expected (and likewise actual)"""
        rng = random.Random(1234)
        for _ in range(300):
            expected = self.random_map(rng)
            actual = self.random_map(rng)
            result = differ.diff(expected, actual)
            common = {t for t in expected if t in actual and expected[t] == actual[t]}

            missing = set(result.missing_tags)
            mismatched = set(result.mismatched_tags)
            unexpected = set(result.unexpected_tags)
            self.assertEqual(missing | mismatched | common, set(expected))
            self.assertFalse(missing & mismatched or missing & common or mismatched & common)
            self.assertEqual(unexpected | mismatched | common, set(actual))
            self.assertFalse(unexpected & mismatched or unexpected & common)

            if expected == actual:
                self.assertEqual(result.status, DiffStatus.PERFECT)
            elif mismatched:
                self.assertEqual(result.status, DiffStatus.MISMATCHED)

    def test_deterministic(self):
        """Test identical input yields identical output"""
        rng = random.Random(99)
        for _ in range(50):
            expected = self.random_map(rng)
            actual = self.random_map(rng)
            self.assertEqual(differ.diff(expected, actual).to_dict(), differ.diff(dict(expected), dict(actual)).to_dict())


if __name__ == '__main__':
    unittest.main()
