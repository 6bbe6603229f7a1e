import pytest
from flask import Flask

from writing_tutor.flask_app.services.assessment import Draft, ParagraphDraft
from writing_tutor.flask_app.services.errors import ExternalServiceError, MalformedResponseError
from writing_tutor.flask_app.services.rubric import RUBRIC_CRITERIA, clamp_score, count_words
from writing_tutor.flask_app.services.rubric_scorer import (
    GeminiScorer,
    HeuristicScorer,
    best_effort,
    get_feedback_scorer,
    get_rubric_scorer,
)


@pytest.fixture(autouse=True)
def app_context():
    app = Flask(__name__)
    with app.app_context():
        yield app


class _FakeClient:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.prompts = []
        self.kwargs = []

    def generate_json_or_raise(self, prompt, **kwargs):
        self.prompts.append(prompt)
        self.kwargs.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.reply


def _words(n, word="word"):
    return " ".join([word] * n)


# ---------------------------------------------------------------------------
# Heuristic section scoring
# ---------------------------------------------------------------------------

def test_heuristic_short_text_scores_one():
    result = HeuristicScorer().score("hook", "Dogs are fun", "Dogs")
    assert result.score == 1
    assert "too short" in result.feedback
    assert result.suggestions == ["Write at least 15-20 words for this section"]


def test_heuristic_dogs_hook_is_moderate():
    hook = "Did you know dogs can smell 10,000 times better than humans?"
    assert count_words(hook) == 11
    assert HeuristicScorer().score("hook", hook, "Dogs").score == 2


def test_heuristic_complete_length_scores_three():
    scorer = HeuristicScorer()
    assert scorer.score("hook", _words(20), "Dogs").score == 3
    assert scorer.score("relevantInfo", _words(49), "Dogs").score == 2
    assert scorer.score("relevantInfo", _words(50), "Dogs").score == 3
    assert scorer.score("conclusion", _words(25), "Dogs").score == 3


def test_heuristic_transitions_need_connecting_word():
    scorer = HeuristicScorer()
    assert scorer.score("transitions", _words(50), "Dogs").score == 2
    assert scorer.score("transitions", "Because " + _words(49), "Dogs").score == 3


def test_heuristic_conclusion_of_eight_words_is_low():
    result = HeuristicScorer().score("conclusion", "Dogs are great pets for every happy family.", "Dogs")
    assert result.score == 1


@pytest.mark.parametrize("criterion", RUBRIC_CRITERIA + ("conclusion",))
@pytest.mark.parametrize("length", [0, 5, 15, 60])
def test_heuristic_scores_stay_in_range(criterion, length):
    result = HeuristicScorer().score(criterion, _words(length), "Dogs")
    assert 1 <= result.score <= 3
    assert result.feedback


# ---------------------------------------------------------------------------
# Heuristic whole-draft scoring
# ---------------------------------------------------------------------------

def _draft(**overrides):
    data = dict(
        topic="Dogs",
        title="All About Dogs",
        hook="Did you know dogs can smell 10,000 times better than humans?",
        paragraphs=[ParagraphDraft("Dogs help people.", "First, they guard homes.")],
        conclusion="Dogs are great pets for every happy family.",
    )
    data.update(overrides)
    return Draft(**data)


def test_title_presence_rules():
    scorer = HeuristicScorer()
    assert scorer.score_criterion("titleSubtitles", _draft(title="Dog")).score == 1
    assert scorer.score_criterion("titleSubtitles", _draft(title="Pets I Love")).score == 2
    assert scorer.score_criterion("titleSubtitles", _draft(title="All About Dogs")).score == 3


def test_hook_presence_rules():
    scorer = HeuristicScorer()
    assert scorer.score_criterion("hook", _draft(hook="Dogs!")).score == 1
    assert scorer.score_criterion("hook", _draft(hook="Dogs are very good pets.")).score == 2
    assert scorer.score_criterion("hook", _draft()).score == 3
    assert scorer.score_criterion("hook", _draft(hook="Imagine a world without dogs.")).score == 3


def test_body_presence_rules():
    scorer = HeuristicScorer()
    assert scorer.score_criterion("relevantInfo", _draft(paragraphs=[])).score == 1
    assert scorer.score_criterion("relevantInfo", _draft()).score == 2
    long_body = [ParagraphDraft("Dogs help.", _words(40)), ParagraphDraft("Dogs play.", _words(40))]
    assert scorer.score_criterion("relevantInfo", _draft(paragraphs=long_body)).score == 3

    assert scorer.score_criterion("transitions", _draft(paragraphs=[])).score == 1
    assert scorer.score_criterion("transitions", _draft()).score == 2
    linked = [ParagraphDraft("First, dogs help.", "Next, they play. Also, they guard.")]
    assert scorer.score_criterion("transitions", _draft(paragraphs=linked)).score == 3


def test_accuracy_and_vocabulary_rules():
    scorer = HeuristicScorer()
    empty = Draft(topic="Dogs")
    assert scorer.score_criterion("accuracy", empty).score == 1
    assert scorer.score_criterion("vocabulary", empty).score == 1
    assert scorer.score_criterion("accuracy", _draft()).score == 2
    assert scorer.score_criterion("vocabulary", _draft()).score == 2

    rich = _draft(
        topic="The ocean",
        hook="The ocean is home to coral, whale and dolphin families.",
    )
    assert scorer.score_criterion("vocabulary", rich).score == 3


def test_presence_feedback_for_top_score_uses_rubric_description():
    result = HeuristicScorer().score_criterion("titleSubtitles", _draft())
    assert result.feedback == "Clear, relevant title that tells what the writing is about"


# ---------------------------------------------------------------------------
# Gemini-delegated scoring
# ---------------------------------------------------------------------------

def test_gemini_scorer_parses_reply_and_sends_schema():
    client = _FakeClient({"score": 3, "feedback": "Great hook!", "suggestions": ["Add a fact"]})
    result = GeminiScorer(client=client, timeout=4).score("hook", "Did you know...?", "Dogs")

    assert result.score == 3
    assert result.feedback == "Great hook!"
    assert result.suggestions == ["Add a fact"]
    assert client.kwargs[0]["timeout"] == 4
    assert client.kwargs[0]["response_schema"]["required"] == ["score", "feedback", "suggestions"]
    assert "Dogs" in client.prompts[0]
    assert "Grabs attention" in client.prompts[0]


@pytest.mark.parametrize("raw, expected", [(5, 3), (0, 1), (-2, 1), ("3", 3), (2.6, 3), ("abc", 2), (None, 2)])
def test_gemini_scores_are_clamped(raw, expected):
    client = _FakeClient({"score": raw, "feedback": "ok"})
    assert GeminiScorer(client=client).score("hook", "text", "Dogs").score == expected


def test_gemini_missing_score_defaults_to_two():
    client = _FakeClient({"feedback": "Nice work"})
    result = GeminiScorer(client=client).score("hook", "text", "Dogs")
    assert result.score == 2
    assert result.suggestions == []


def test_gemini_suggestions_are_capped():
    client = _FakeClient({"score": 2, "feedback": "ok", "suggestions": ["a", "b", "c", "d", "e"]})
    assert GeminiScorer(client=client).score("hook", "text", "Dogs").suggestions == ["a", "b", "c"]


@pytest.mark.parametrize("reply", [{}, {"suggestions": ["x"]}, ["not", "an", "object"], "3"])
def test_gemini_unusable_reply_is_malformed(reply):
    with pytest.raises(MalformedResponseError):
        GeminiScorer(client=_FakeClient(reply)).score("hook", "text", "Dogs")


def test_gemini_transport_failure_propagates():
    client = _FakeClient(error=ExternalServiceError("Gemini request timed out"))
    with pytest.raises(ExternalServiceError):
        GeminiScorer(client=client).score("hook", "text", "Dogs")


def test_gemini_criterion_scoring_uses_draft_slices():
    client = _FakeClient({"score": 2, "feedback": "ok"})
    GeminiScorer(client=client).score_criterion("titleSubtitles", _draft())
    assert "All About Dogs" in client.prompts[0]


# ---------------------------------------------------------------------------
# Best effort and selection
# ---------------------------------------------------------------------------

def test_best_effort_swallows_model_failures():
    failing = GeminiScorer(client=_FakeClient(error=ExternalServiceError("down")))
    malformed = GeminiScorer(client=_FakeClient({}))
    assert best_effort(failing.score, "hook", "text", "Dogs") is None
    assert best_effort(malformed.score, "hook", "text", "Dogs") is None


def test_best_effort_passes_results_and_other_errors_through():
    ok = GeminiScorer(client=_FakeClient({"score": 3, "feedback": "yay"}))
    assert best_effort(ok.score, "hook", "text", "Dogs").score == 3

    def boom():
        raise ValueError("bug")

    with pytest.raises(ValueError):
        best_effort(boom)


def test_scorer_selection_follows_config(app_context):
    assert isinstance(get_rubric_scorer(), HeuristicScorer)
    app_context.config["SCORER_STRATEGY"] = "gemini"
    assert isinstance(get_rubric_scorer(), GeminiScorer)
    app_context.config["SCORER_STRATEGY"] = "unknown"
    assert isinstance(get_rubric_scorer(), HeuristicScorer)

    assert get_feedback_scorer() is None
    app_context.config["AI_FEEDBACK_ENABLED"] = True
    assert isinstance(get_feedback_scorer(), GeminiScorer)


def test_clamp_score_rejects_booleans():
    assert clamp_score(True) == 2
    assert clamp_score(False) == 2
