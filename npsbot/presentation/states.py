from aiogram.fsm.state import StatesGroup, State

from npsbot.domain.enums import SurveyStage

class SurveySG(StatesGroup):
    wait_code = State()
    welcome = State()
    recommend = State()
    reason = State()
    rehire = State()
    testimonial = State()
    publish = State()
    summary = State()

# Terminal stages have no FSM state: reaching them clears the context
STAGE_STATES = {
    SurveyStage.WELCOME: SurveySG.welcome,
    SurveyStage.RECOMMEND: SurveySG.recommend,
    SurveyStage.REASON: SurveySG.reason,
    SurveyStage.REHIRE: SurveySG.rehire,
    SurveyStage.TESTIMONIAL: SurveySG.testimonial,
    SurveyStage.PUBLISH: SurveySG.publish,
    SurveyStage.SUMMARY: SurveySG.summary,
}
