"""
Voice turn-taking engine for EduSight onboarding.

Speak prompts -> listen -> interpret -> one TurnResult -> phase transition.
Every listening state is bounded by a timeout or paired with manual
controls, so voice failures always converge on something the user can tap.

- speech_output / speech_input: the two process-wide speech controllers
- turns: TurnCoordinator and the shared RetryPolicy
- listener: the home screen's re-armed command listener
- interpreters: transcript matching
- phases: one state machine per screen
- engine: lifecycle (start_engine / get_engine / shutdown_engine)

All behavior is observable via structured events (observability.events).
"""
