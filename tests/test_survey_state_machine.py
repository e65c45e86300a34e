import pytest

from npsbot.domain.entities import SurveySession
from npsbot.domain.enums import CodeStatus, SurveyStage, TERMINAL_STAGES
from npsbot.domain.exceptions import (
    CodeNotFound,
    InvalidTransitionError,
    StepValidationError,
    SurveyCompletionError,
    TerminalStageError,
)
from npsbot.use_cases.code_registry import status_of
from npsbot.use_cases.survey import STAGES, progress

HAPPY_PATH = [
    (SurveyStage.WELCOME, None),
    (SurveyStage.RECOMMEND, "9"),
    (SurveyStage.REASON, "Great team"),
    (SurveyStage.REHIRE, 10),
    (SurveyStage.TESTIMONIAL, "Fast and clear delivery"),
    (SurveyStage.PUBLISH, "yes"),
]


async def walk_to(machine, session, stage):
    for current, value in HAPPY_PATH:
        if session.stage == stage:
            return session
        assert session.stage == current
        await machine.advance(session, value)
    assert session.stage == stage
    return session


class TestEnter:
    async def test_fresh_code_starts_at_welcome(self, machine, make_code):
        await make_code("ABC12345")
        session = await machine.enter(" abc12345 ")
        assert session.code == "ABC12345"
        assert session.stage == SurveyStage.WELCOME
        assert session.answers == {}

    async def test_unknown_code(self, machine):
        with pytest.raises(CodeNotFound):
            await machine.enter("NOPE0000")

    async def test_completed_code_is_routed_to_code_used(self, machine, registry, make_code):
        await make_code("ABC12345")
        await registry.complete("ABC12345")
        session = await machine.enter("ABC12345")
        assert session.stage == SurveyStage.CODE_USED
        with pytest.raises(TerminalStageError):
            await machine.advance(session)


class TestAdvance:
    async def test_full_flow_stores_answers_and_completes(self, machine, collector, code_repo, make_code):
        await make_code("ABC12345")
        session = await machine.enter("ABC12345")
        await walk_to(machine, session, SurveyStage.SUMMARY)

        assert session.answers == {
            "recommend_score": 9,
            "recommend_reason": "Great team",
            "rehire_score": 10,
            "testimonial": "Fast and clear delivery",
            "can_publish": True,
        }

        await machine.advance(session)
        assert session.stage == SurveyStage.THANK_YOU

        rows = await collector.fetch_all("ABC12345")
        assert {r.question_id: r.answer for r in rows} == {
            "recommend_score": "9",
            "recommend_reason": "Great team",
            "rehire_score": "10",
            "testimonial": "Fast and clear delivery",
            "can_publish": "true",
        }
        survey_code = await code_repo.get_by_code("ABC12345")
        assert status_of(survey_code) == CodeStatus.COMPLETED
        assert survey_code.started_at <= survey_code.completed_at

        with pytest.raises(TerminalStageError):
            await machine.advance(session)

    async def test_welcome_activates_code(self, machine, code_repo, make_code):
        await make_code("ABC12345")
        session = await machine.enter("ABC12345")
        await machine.advance(session)
        assert session.stage == SurveyStage.RECOMMEND
        survey_code = await code_repo.get_by_code("ABC12345")
        assert status_of(survey_code) == CodeStatus.IN_PROGRESS

    async def test_activation_failure_does_not_block(self, machine, registry, make_code, monkeypatch):
        await make_code("ABC12345")

        async def broken_activate(code):
            raise ConnectionError("database unreachable")

        monkeypatch.setattr(registry, "activate", broken_activate)
        session = await machine.enter("ABC12345")
        await machine.advance(session)
        assert session.stage == SurveyStage.RECOMMEND

    @pytest.mark.parametrize("value", [0, 11, "abc", "", "²", "1²", True, None, 7.5])
    async def test_invalid_score_keeps_stage(self, machine, make_code, value):
        await make_code("ABC12345")
        session = await walk_to(machine, await machine.enter("ABC12345"), SurveyStage.RECOMMEND)
        with pytest.raises(StepValidationError):
            await machine.advance(session, value)
        assert session.stage == SurveyStage.RECOMMEND
        assert "recommend_score" not in session.answers

    @pytest.mark.parametrize("value", ["", "   ", None])
    async def test_blank_text_is_rejected(self, machine, make_code, value):
        await make_code("ABC12345")
        session = await walk_to(machine, await machine.enter("ABC12345"), SurveyStage.REASON)
        with pytest.raises(StepValidationError):
            await machine.advance(session, value)
        assert session.stage == SurveyStage.REASON

    async def test_text_is_stripped(self, machine, make_code):
        await make_code("ABC12345")
        session = await walk_to(machine, await machine.enter("ABC12345"), SurveyStage.REASON)
        await machine.advance(session, "  Great team \n")
        assert session.answers["recommend_reason"] == "Great team"

    async def test_publish_choice(self, machine, make_code):
        await make_code("ABC12345")
        session = await walk_to(machine, await machine.enter("ABC12345"), SurveyStage.PUBLISH)
        with pytest.raises(StepValidationError):
            await machine.advance(session, "maybe")
        await machine.advance(session, "no")
        assert session.answers["can_publish"] is False
        assert session.stage == SurveyStage.SUMMARY


class TestBack:
    async def test_back_keeps_answers_and_writes_nothing(self, machine, collector, make_code):
        await make_code("ABC12345")
        session = await walk_to(machine, await machine.enter("ABC12345"), SurveyStage.REHIRE)
        await collector.flush("ABC12345")
        rows_before = await collector.fetch_all("ABC12345")

        await machine.back(session)
        assert session.stage == SurveyStage.REASON
        await machine.back(session)
        assert session.stage == SurveyStage.RECOMMEND
        assert session.answers["recommend_score"] == 9
        assert session.answers["recommend_reason"] == "Great team"

        await collector.flush("ABC12345")
        assert len(await collector.fetch_all("ABC12345")) == len(rows_before)

    async def test_changed_answer_is_appended(self, machine, collector, make_code):
        await make_code("ABC12345")
        session = await walk_to(machine, await machine.enter("ABC12345"), SurveyStage.REASON)
        await collector.flush("ABC12345")
        await machine.back(session)
        await machine.advance(session, 6)
        assert session.answers["recommend_score"] == 6

        await collector.flush("ABC12345")
        rows = await collector.fetch_all("ABC12345")
        assert [r.answer for r in rows if r.question_id == "recommend_score"] == ["9", "6"]

    async def test_back_from_welcome_is_invalid(self, machine, make_code):
        await make_code("ABC12345")
        session = await machine.enter("ABC12345")
        with pytest.raises(InvalidTransitionError):
            await machine.back(session)

    @pytest.mark.parametrize("stage", [SurveyStage.THANK_YOU, SurveyStage.CODE_USED])
    async def test_back_from_terminal_is_invalid(self, machine, stage):
        with pytest.raises(InvalidTransitionError):
            await machine.back(SurveySession(code="ABC12345", stage=stage))


class TestSubmit:
    async def test_failed_completion_stays_on_summary_and_can_retry(
        self, machine, registry, code_repo, make_code, monkeypatch
    ):
        await make_code("ABC12345")
        session = await walk_to(machine, await machine.enter("ABC12345"), SurveyStage.SUMMARY)

        real_complete = registry.try_complete
        calls = []

        async def flaky_complete(code):
            calls.append(code)
            if len(calls) == 1:
                raise ConnectionError("database unreachable")
            return await real_complete(code)

        monkeypatch.setattr(registry, "try_complete", flaky_complete)

        with pytest.raises(SurveyCompletionError):
            await machine.advance(session)
        assert session.stage == SurveyStage.SUMMARY
        survey_code = await code_repo.get_by_code("ABC12345")
        assert survey_code.completed_at is None

        await machine.advance(session)
        assert session.stage == SurveyStage.THANK_YOU
        survey_code = await code_repo.get_by_code("ABC12345")
        assert survey_code.completed_at is not None
        assert len(calls) == 2

    async def test_submit_after_completion_elsewhere(self, machine, registry, code_repo, make_code):
        await make_code("ABC12345")
        session = await walk_to(machine, await machine.enter("ABC12345"), SurveyStage.SUMMARY)
        first = await registry.complete("ABC12345")

        await machine.advance(session)
        assert session.stage == SurveyStage.CODE_USED
        survey_code = await code_repo.get_by_code("ABC12345")
        assert survey_code.completed_at == first

    async def test_answers_after_completion_elsewhere_end_on_code_used(
        self, machine, registry, collector, make_code
    ):
        await make_code("ABC12345")
        session = await walk_to(machine, await machine.enter("ABC12345"), SurveyStage.REHIRE)
        await collector.flush("ABC12345")
        await registry.complete("ABC12345")

        # One value per remaining stage; the flow may be cut short at any of them
        for value in [3, "Awful", "no", None]:
            if session.stage in TERMINAL_STAGES:
                break
            await machine.advance(session, value)

        assert session.stage == SurveyStage.CODE_USED
        rows = await collector.fetch_all("ABC12345")
        assert sorted(r.question_id for r in rows) == ["recommend_reason", "recommend_score"]
        assert not collector.is_closed("ABC12345")


class TestProgress:
    def test_question_stages_are_numbered(self):
        assert progress(SurveyStage.WELCOME) == (0, 5)
        assert progress(SurveyStage.RECOMMEND) == (1, 5)
        assert progress(SurveyStage.REASON) == (2, 5)
        assert progress(SurveyStage.PUBLISH) == (5, 5)
        assert progress(SurveyStage.SUMMARY) == (5, 5)
        assert progress(SurveyStage.CODE_USED) == (0, 5)

    def test_code_used_is_not_part_of_the_flow(self):
        assert SurveyStage.CODE_USED not in [d.stage for d in STAGES]

    def test_session_round_trip(self):
        session = SurveySession(code="ABC12345", stage=SurveyStage.REHIRE, answers={"recommend_score": 9})
        restored = SurveySession.from_dict(session.to_dict())
        assert restored == session
        assert restored.stage is SurveyStage.REHIRE
