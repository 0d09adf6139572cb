import asyncio
import json

import httpx
import pytest

from bilimcheck.errors import PlanTransportError, PlanValidationError, TransportError
from bilimcheck.schemas import SubjectDetail, SubmissionResult
from bilimcheck.study_plan import StudyPlanGenerator, build_prompt, parse_plan, resolve_language

from conftest import gemini_reply, question, submission_payload

GEMINI_PATH = "/v1beta/models/gemini-2.5-flash:generateContent"

QUESTIONS = [
	question(1, 1, "3/4 + 1/4 = ?", {"A": "1", "B": "4/8"}),
	question(2, 2, "Solve 2x = 6", {"A": "x = 3", "B": "x = 4"}),
	question(3, 3, "Area of a 2x3 rectangle", {"A": "5", "B": "6"}),
]
CORRECT = {1: "A", 2: "A", 3: "B"}

PLAN_JSON = json.dumps(
	{
		"topics": [
			{"name": "Fractions", "desc": "Adding fractions with the same denominator."},
			{"name": "Area", "desc": "Area of a rectangle is width times height."},
		]
	}
)


def _submission(answers, topics="Fractions, equations"):
	return SubmissionResult.model_validate(submission_payload(QUESTIONS, answers, CORRECT, topics=topics))


def test_prompt_lists_every_incorrect_answer():
	submission = _submission({1: "B", 2: "A"})
	incorrect = submission.incorrect_questions

	prompt = build_prompt(submission.subject_detail, incorrect, submission.result, "Karakalpak")

	assert len(incorrect) == 2
	assert prompt.count("- Question:") == 2
	assert '- Question: "3/4 + 1/4 = ?"' in prompt
	assert '  - Your Answer: "4/8"' in prompt
	assert '  - Correct Answer: "1"' in prompt
	# unanswered question 3
	assert '  - Your Answer: "Not answered"' in prompt
	assert '  - Correct Answer: "6"' in prompt
	assert "- Subject: Math" in prompt
	assert "- Grade: 5" in prompt
	assert "- Topics: Fractions, equations" in prompt
	assert "(1 out of 3 correct)" in prompt
	assert "only in Karakalpak language" in prompt


def test_prompt_omits_topics_line_when_missing():
	submission = _submission({1: "B"}, topics=None)
	prompt = build_prompt(submission.subject_detail, submission.incorrect_questions, submission.result, "English")

	assert "- Topics:" not in prompt


@pytest.mark.parametrize(
	"name,expected",
	[("English", "English"), ("ingliz tili", "English"), ("Rus tili", "Russian"), ("Math", "Karakalpak")],
)
def test_resolve_language(name, expected):
	detail = SubjectDetail(id=1, name=name, grade=5)
	mapping = {"English": "English", "Ingliz tili": "English", "Rus tili": "Russian"}

	assert resolve_language(detail, default="Karakalpak", language_subjects=mapping) == expected


def test_all_correct_never_calls_the_model(gemini, gemini_server):
	submission = _submission({1: "A", 2: "A", 3: "B"})

	plan = asyncio.run(StudyPlanGenerator(gemini).generate(submission.subject_detail, submission))

	assert not plan.needed
	assert plan.is_empty
	assert gemini_server.requests == []


def test_generate_sends_schema_and_parses_topics(gemini, gemini_server):
	gemini_server.routes[("POST", GEMINI_PATH)] = gemini_reply(PLAN_JSON)
	submission = _submission({1: "B", 2: "A", 3: "A"})

	plan = asyncio.run(StudyPlanGenerator(gemini, language="Karakalpak").generate(submission.subject_detail, submission))

	assert [t.name for t in plan.topics] == ["Fractions", "Area"]
	assert plan.topics[1].description.startswith("Area of a rectangle")
	request = gemini_server.requests[0]
	assert request.url.params["key"] == "test-key"
	body = json.loads(request.content)
	config = body["generationConfig"]
	assert config["responseMimeType"] == "application/json"
	assert config["responseSchema"]["properties"]["topics"]["items"]["required"] == ["name", "desc"]
	assert body["contents"][0]["parts"][0]["text"].count("- Question:") == 2


def test_missing_desc_is_a_validation_error(gemini, gemini_server):
	raw = json.dumps({"topics": [{"name": "Fractions"}]})
	gemini_server.routes[("POST", GEMINI_PATH)] = gemini_reply(raw)
	submission = _submission({1: "B"})

	with pytest.raises(PlanValidationError) as excinfo:
		asyncio.run(StudyPlanGenerator(gemini).generate(submission.subject_detail, submission))

	assert excinfo.value.raw == raw
	assert excinfo.value.retryable


def test_non_json_reply_is_a_validation_error(gemini, gemini_server):
	gemini_server.routes[("POST", GEMINI_PATH)] = gemini_reply("Here is your plan: study harder")
	submission = _submission({1: "B"})

	with pytest.raises(PlanValidationError):
		asyncio.run(StudyPlanGenerator(gemini).generate(submission.subject_detail, submission))


def test_reply_without_candidates_is_a_validation_error(gemini, gemini_server):
	gemini_server.routes[("POST", GEMINI_PATH)] = {"candidates": []}
	submission = _submission({1: "B"})

	with pytest.raises(PlanValidationError):
		asyncio.run(StudyPlanGenerator(gemini).generate(submission.subject_detail, submission))


def test_http_failure_is_a_transport_error(gemini, gemini_server):
	gemini_server.routes[("POST", GEMINI_PATH)] = httpx.Response(503, json={"error": "overloaded"})
	submission = _submission({1: "B"})

	with pytest.raises(PlanTransportError) as excinfo:
		asyncio.run(StudyPlanGenerator(gemini).generate(submission.subject_detail, submission))

	assert isinstance(excinfo.value, TransportError)
	assert excinfo.value.retryable


def test_parse_plan_accepts_fenced_json():
	plan = parse_plan(f"```json\n{PLAN_JSON}\n```")

	assert len(plan.topics) == 2


def test_parse_plan_rejects_non_string_desc():
	with pytest.raises(PlanValidationError):
		parse_plan(json.dumps({"topics": [{"name": "Fractions", "desc": 3}]}))
