"""Unit tests for the strategy chain and JobSelector."""

from unittest.mock import Mock

import pytest

from jobdigest.targeting import (
    STRATEGIES,
    ExperienceRange,
    JobSelector,
    SelectionContext,
    SelectionResult,
    StrategyTag,
    compose_digest,
    run_strategies,
    select_jobs_for_contact,
)
from tests.helpers import make_contact, make_job


class TestStrategyChain:
    """The chain is an ordered, enumerable list."""

    def test_order_and_tags(self):
        assert [s.tag for s in STRATEGIES] == [
            StrategyTag.FRESHER_BRANCH_EXPERIENCE,
            StrategyTag.FRESHER_BRANCH,
            StrategyTag.FRESHER_EXPERIENCE,
            StrategyTag.ALL_BRANCH_EXPERIENCE,
            StrategyTag.ALL_BRANCH,
            StrategyTag.ALL_EXPERIENCE,
        ]

    def test_prefers_fresher_tags(self):
        assert StrategyTag.FRESHER_BRANCH.prefers_fresher
        assert not StrategyTag.ALL_BRANCH.prefers_fresher
        assert not StrategyTag.NO_MATCH.prefers_fresher

    def test_strategy_evaluates_its_own_filters(self):
        context = SelectionContext(
            branch_tokens=frozenset({"mechanical"}),
            contact_range=ExperienceRange(0, 0),
            all_jobs=(),
            fresher_jobs=(make_job("1", title="Mechanical Lead", experience="6-9"),),
        )
        branch_and_experience, branch_only = STRATEGIES[0], STRATEGIES[1]

        assert branch_and_experience.evaluate(context) == []
        assert [job.id for job in branch_only.evaluate(context)] == ["1"]
        assert run_strategies(context)[0] == StrategyTag.FRESHER_BRANCH

    def test_gated_strategy_returns_empty_when_precondition_fails(self):
        context = SelectionContext(
            branch_tokens=frozenset(),
            contact_range=None,
            all_jobs=(make_job("1"),),
            fresher_jobs=(),
        )
        assert STRATEGIES[4].evaluate(context) == []
        assert STRATEGIES[5].evaluate(context) == []


class TestSelectionScenarios:
    """End-to-end selections for representative contacts."""

    def test_fresher_mechanical_contact_gets_fresher_job(self):
        contact = make_contact(branch="mechanical", experience="fresher")
        job = make_job(title="Graduate Trainee", category="Mechanical", experience="0-1")

        result = select_jobs_for_contact(contact, [job])

        assert result.strategy_tag == StrategyTag.FRESHER_BRANCH_EXPERIENCE
        assert result.jobs == (job,)

    def test_unrelated_pool_gives_no_match(self):
        contact = make_contact(branch="mechanical", experience="fresher")
        job = make_job(title="Site Engineer", category="Civil", experience="2-4")

        result = select_jobs_for_contact(contact, [job])

        assert result.strategy_tag == StrategyTag.NO_MATCH
        assert result.jobs == ()

    def test_contact_without_signals_gets_first_five(self):
        contact = make_contact(branch="", experience="")
        jobs = [make_job(str(i), experience="senior") for i in range(8)]

        result = select_jobs_for_contact(contact, jobs)

        assert result.strategy_tag == StrategyTag.ALL_BRANCH_EXPERIENCE
        assert result.jobs == tuple(jobs[:5])

    def test_designer_pool_is_truncated_to_five(self):
        contact = make_contact(branch="design", experience="2-5")
        jobs = [make_job(str(i), title=f"UI Designer {i}", experience="3-4") for i in range(7)]

        result = select_jobs_for_contact(contact, jobs)

        assert result.strategy_tag == StrategyTag.ALL_BRANCH_EXPERIENCE
        assert result.jobs == tuple(jobs[:5])

    def test_selection_is_repeatable(self):
        contact = make_contact(branch="mechanical", experience="fresher")
        jobs = [make_job("1", category="Mechanical", experience="0-1")]

        first = select_jobs_for_contact(contact, jobs)
        second = select_jobs_for_contact(contact, jobs)

        assert first == second


class TestFallbacks:
    """Fallback steps taken by the selector."""

    def test_fresher_experience_when_no_fresher_job_matches_branch(self):
        contact = make_contact(branch="mechanical", experience="fresher")
        fresher = make_job("1", title="Trainee Accountant", experience="0")
        senior = make_job("2", title="Mechanical Lead", experience="8-10")

        result = select_jobs_for_contact(contact, [senior, fresher])

        assert result.strategy_tag == StrategyTag.FRESHER_EXPERIENCE
        assert result.jobs == (fresher,)

    def test_fresher_group_skipped_for_experienced_contact(self):
        contact = make_contact(branch="mechanical", experience="3-5")
        fresher = make_job("1", title="Mechanical Trainee", experience="0-1")
        mid = make_job("2", title="Mechanical Engineer", experience="4")

        result = select_jobs_for_contact(contact, [fresher, mid])

        assert result.strategy_tag == StrategyTag.ALL_BRANCH_EXPERIENCE
        assert result.jobs == (mid,)

    def test_fresher_group_skipped_when_no_fresher_jobs(self):
        contact = make_contact(branch="mechanical", experience="fresher")
        job = make_job(title="Mechanical Engineer", experience="0-2")

        result = select_jobs_for_contact(contact, [job])

        assert result.strategy_tag == StrategyTag.ALL_BRANCH_EXPERIENCE
        assert result.jobs == (job,)

    def test_all_branch_when_experience_excludes_everything(self):
        contact = make_contact(branch="mechanical", experience="10+")
        job = make_job(title="Mechanical Engineer", experience="2-4")

        result = select_jobs_for_contact(contact, [job])

        assert result.strategy_tag == StrategyTag.ALL_BRANCH
        assert result.jobs == (job,)

    def test_all_experience_when_branch_excludes_everything(self):
        contact = make_contact(branch="chemical", experience="2-5")
        job = make_job(title="Data Analyst", experience="3")

        result = select_jobs_for_contact(contact, [job])

        assert result.strategy_tag == StrategyTag.ALL_EXPERIENCE
        assert result.jobs == (job,)

    def test_all_branch_skipped_without_tokens(self):
        contact = make_contact(branch="", experience="10+")
        job = make_job(title="Data Analyst", experience="1-2")

        result = select_jobs_for_contact(contact, [job])

        assert result.strategy_tag == StrategyTag.NO_MATCH

    def test_empty_pool_gives_no_match(self):
        result = select_jobs_for_contact(make_contact(branch="it", experience="2"), [])
        assert result == SelectionResult.no_match()


class TestProperties:
    """Invariants that hold for every selection."""

    @pytest.fixture
    def pool(self):
        return [
            make_job("1", title="Mechanical Trainee", experience="0-1"),
            make_job("2", title="Mechanical Engineer", experience="2-4"),
            make_job("3", title="Civil Engineer", experience="fresher"),
            make_job("4", title="Python Developer", experience="3+"),
            make_job("5", title="Designer", experience="senior"),
            make_job("6", title="Mechanical Designer", experience="1"),
            make_job("7", title="Mechanical Fitter", experience="0"),
            make_job("8", title="Mechanical Supervisor", experience="5-8"),
        ]

    @pytest.mark.parametrize(
        "branch,experience",
        [
            ("mechanical", "fresher"),
            ("mechanical", "2-5"),
            ("", ""),
            ("python", "10+"),
            ("astronomy", "unknown"),
            ("e", "0"),
        ],
    )
    def test_bounded_and_consistent(self, pool, branch, experience):
        result = select_jobs_for_contact(make_contact(branch=branch, experience=experience), pool)

        assert 0 <= len(result.jobs) <= 5
        assert (result.strategy_tag == StrategyTag.NO_MATCH) == (len(result.jobs) == 0)
        positions = [pool.index(job) for job in result.jobs]
        assert positions == sorted(positions)

    def test_fresher_precedence(self, pool):
        result = select_jobs_for_contact(make_contact(branch="mechanical", experience="fresher"), pool)

        assert result.strategy_tag.prefers_fresher
        assert [job.id for job in result.jobs] == ["1", "7"]


class TestJobSelector:
    """Tests for JobSelector configuration."""

    def test_custom_digest_limit(self):
        selector = JobSelector(digest_limit=2)
        jobs = [make_job(str(i)) for i in range(4)]

        result = selector.select(make_contact(), jobs)

        assert len(result.jobs) == 2

    def test_min_branch_token_length_drops_short_tokens(self):
        selector = JobSelector(min_branch_token_length=3)
        contact = make_contact(branch="e, it, civil")

        context = selector.build_context(contact, [])

        assert context.branch_tokens == {"civil"}

    @pytest.mark.parametrize("kwargs", [{"digest_limit": 0}, {"min_branch_token_length": 0}])
    def test_rejects_invalid_settings(self, kwargs):
        with pytest.raises(ValueError):
            JobSelector(**kwargs)

    def test_logs_selection(self):
        mock_logger = Mock()
        selector = JobSelector(logger_instance=mock_logger)

        selector.select(make_contact(), [make_job()])

        mock_logger.debug.assert_called_once()
        extra = mock_logger.debug.call_args.kwargs["extra"]
        assert extra["event"] == "targeting.selection.completed"
        assert extra["strategy"] == StrategyTag.ALL_BRANCH_EXPERIENCE.value


class TestSelectionResult:
    """Tests for SelectionResult consistency checks."""

    def test_no_match_with_jobs_is_rejected(self):
        with pytest.raises(ValueError):
            SelectionResult(StrategyTag.NO_MATCH, (make_job(),))

    def test_match_without_jobs_is_rejected(self):
        with pytest.raises(ValueError):
            SelectionResult(StrategyTag.ALL_BRANCH, ())

    def test_job_keys(self):
        job = make_job("42")
        assert SelectionResult(StrategyTag.ALL_BRANCH, (job,)).job_keys == ("jobs:42",)


class TestComposeDigest:
    """Tests for compose_digest."""

    def test_keeps_prefix_in_order(self):
        jobs = [make_job(str(i)) for i in range(7)]
        assert compose_digest(jobs) == tuple(jobs[:5])

    def test_short_list_returned_whole(self):
        jobs = [make_job("1"), make_job("2")]
        assert compose_digest(jobs, digest_limit=5) == tuple(jobs)

    def test_rejects_zero_limit(self):
        with pytest.raises(ValueError):
            compose_digest([make_job()], digest_limit=0)
