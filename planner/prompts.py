"""Prompt builders for planner calls."""
from __future__ import annotations

import math
from textwrap import dedent

from agents.phases import next_phase
from interview.state import SessionConfig

from .context import PlannerContext


def _profile(config: SessionConfig) -> str:
    company = f" at {config.company}" if config.company else ""
    lines = [
        f"Role: {config.seniority} {config.role}{company}",
        f"Interview types: {', '.join(config.interview_types)}",
        f"Duration: {config.duration_minutes} minutes",
        f"Question familiarity: {config.question_familiarity}",
    ]
    if config.job_description:
        lines.append(f"Job description: {config.job_description}")
    return "\n".join(lines)


def opening_question(config: SessionConfig, candidate_name: str | None = None) -> str:
    greeting = f"The candidate's name is {candidate_name}." if candidate_name else "The candidate has not shared a name."
    mode = "a practice session with coaching after every answer" if config.interview_mode == "practice" else "a realistic mock interview"
    return dedent(
        f"""
        {_profile(config)}

        You are a professional interviewer opening {mode}. {greeting}
        Introduce yourself briefly, give a one-sentence agenda and ask ONE warm-up question.
        Do not mention time estimates or durations.
        """
    ).strip()


def moderation(response: str, question: str, previous_warnings: int, recent_history: str) -> str:
    history = f"Recent conversation:\n{recent_history}\n\n" if recent_history else ""
    strict = "This candidate already has a warning; be strict.\n" if previous_warnings >= 1 else ""
    return dedent(
        f"""
        You are a content moderation system for a job interview.

        {history}Question asked: {question}
        Candidate's response: "{response}"
        Previous warnings issued: {previous_warnings}
        {strict}
        Check for profanity, abusive language (insults, harassment, threats, hate speech)
        and responses that are completely unrelated to the question.
        Technical terms such as "kill process", "git blame" or "assembly" are acceptable.
        Only flag genuinely inappropriate or off-topic content.
        """
    ).strip()


def agentic_decision(ctx: PlannerContext) -> str:
    duration = ctx.config.duration_minutes
    percent = round(ctx.elapsed_minutes / duration * 100) if duration else 0
    target_questions = math.ceil(duration / 5)
    return dedent(
        f"""
        {_profile(ctx.config)}

        You are an interview agent deciding the next step.
        Elapsed: {ctx.elapsed_minutes:.1f} of {duration} minutes ({percent}% complete), {ctx.remaining_minutes:.1f} remaining.
        Questions asked so far: {ctx.questions_asked} (aim for about {target_questions}).
        Current phase: {ctx.phase}
        Last question: {ctx.last_question}
        Candidate's latest response: {ctx.last_response or 'No recent response'}

        Options:
        ASK_FOLLOWUP - dig deeper into the last answer
        MOVE_NEXT - move to the next question
        CHANGE_PHASE - move on to the next interview phase
        CLARIFY - ask the candidate to clarify an unclear answer
        WRAP_UP - begin concluding the interview
        REDIRECT - the answer was off-topic; restate the question
        MODERATE - the answer was unprofessional; issue a warning

        Choose WRAP_UP only when less than 20% of the time remains.
        """
    ).strip()


def follow_up(ctx: PlannerContext) -> str:
    return dedent(
        f"""
        {_profile(ctx.config)}

        Continue the interview without re-introducing yourself.
        The candidate answered: {ctx.last_response}
        Ask ONE follow-up question that probes deeper into that answer.
        """
    ).strip()


def clarification(ctx: PlannerContext) -> str:
    return dedent(
        f"""
        {_profile(ctx.config)}

        The candidate's answer was unclear: {ctx.last_response}
        Politely ask ONE clarifying question about the same topic.
        """
    ).strip()


def phase_transition(ctx: PlannerContext) -> str:
    return dedent(
        f"""
        {_profile(ctx.config)}

        Smoothly transition the interview from the {ctx.phase} phase to the {next_phase(ctx.phase)} phase.
        Acknowledge the previous answer in one sentence, then ask ONE question for the new phase.
        """
    ).strip()


def wrap_up(ctx: PlannerContext) -> str:
    return dedent(
        f"""
        {_profile(ctx.config)}

        Conclude the interview. Full conversation:
        {ctx.full_history}

        Thank the candidate, mention one specific highlight from the conversation
        and close the session. Do not ask a new interview question.
        """
    ).strip()


def redirect(ctx: PlannerContext) -> str:
    return dedent(
        f"""
        {_profile(ctx.config)}

        The candidate drifted off-topic. Politely steer back and restate the question:
        {ctx.last_question}
        """
    ).strip()


def moderate(ctx: PlannerContext) -> str:
    return dedent(
        f"""
        {_profile(ctx.config)}

        Remind the candidate to keep the conversation professional, then restate the question:
        {ctx.last_question}
        """
    ).strip()


def next_question(ctx: PlannerContext) -> str:
    return dedent(
        f"""
        {_profile(ctx.config)}

        Continue the interview without re-introducing yourself.
        Ask the next {ctx.phase} question for a {ctx.config.seniority} {ctx.config.role}.
        Make it challenging but fair. Ask only ONE question and do not mention durations.
        """
    ).strip()


def practice_feedback(ctx: PlannerContext) -> str:
    level = f"{ctx.config.seniority} {ctx.config.role}"
    areas = " or ".join(ctx.config.interview_types)
    return dedent(
        f"""
        {_profile(ctx.config)}

        You are an interview coach giving immediate feedback in practice mode.
        Question asked: {ctx.last_question}
        Candidate's answer: {ctx.last_response}

        Provide: a 1-5 score against {level} standards, constructive feedback,
        five sample answers ranging from acceptable to excellent, three concrete
        improvements, and the next practice question in the {areas} area.
        """
    ).strip()


def evaluation(ctx: PlannerContext) -> str:
    return dedent(
        f"""
        {_profile(ctx.config)}

        You are a data-backed interviewer producing the final evaluation.
        Conversation history:
        {ctx.full_history}

        Score each area from 1 (no relevant answer) to 5 (excellent, detailed, with metrics).
        Recommendation must be exactly one of "Strong Hire" (4.5+), "Hire" (4.0+),
        "Maybe" (3.0+) or "No Hire" (below 3.0).
        Keep the tone calm and constructive with specific learning suggestions.
        """
    ).strip()


CONTENT_PROMPTS = {
    "ASK_FOLLOWUP": follow_up,
    "CLARIFY": clarification,
    "CHANGE_PHASE": phase_transition,
    "WRAP_UP": wrap_up,
    "REDIRECT": redirect,
    "MODERATE": moderate,
    "MOVE_NEXT": next_question,
}


__all__ = [
    "CONTENT_PROMPTS",
    "agentic_decision",
    "evaluation",
    "moderation",
    "opening_question",
    "practice_feedback",
]
