"""
Revision workflow example: Levels → Quiz → Answers → Results → Progression

Runs one interactive revision quiz end to end:
1. Load configuration and quiz settings
2. Show available levels and the suggested difficulty
3. Generate a quiz from the resource catalogue
4. Answer questions in the terminal (open answers graded by the model)
5. Show results and the updated progression

Requires OPENAI_API_KEY. Resources come from data/resources.json when it
exists, otherwise from a small built-in catalogue.
"""

from revision_quiz.config import config, configure_logging, token_tracker
from revision_quiz.errors import GenerationFailed, RevisionQuizError
from revision_quiz.models.resource import Resource
from revision_quiz.orchestrator import RevisionOrchestrator
from revision_quiz.utils.persistence import (
    InMemoryContentStore,
    JsonContentStore,
    JsonPerformanceStore,
)
from revision_quiz.utils.progress import average_score, subject_breakdown

DEMO_RESOURCES = [
    Resource(
        "demo-fractions", "math", 1,
        "https://en.wikipedia.org/wiki/Fraction", language="en", title="Fractions",
    ),
    Resource(
        "demo-linear-equations", "math", 2,
        "https://en.wikipedia.org/wiki/Linear_equation", language="en",
        title="Linear equations",
    ),
    Resource(
        "demo-derivatives", "math", 4,
        "https://en.wikipedia.org/wiki/Derivative", language="en", title="Derivatives",
    ),
]


def main():
    configure_logging("WARNING")

    # ==================== Step 1: Configuration ====================
    print("=" * 60)
    print("STEP 1: Loading configuration")
    print("=" * 60)

    errors = config.validate()
    if errors:
        for error in errors:
            print(f"✗ {error}")
        return
    config.prepare_fs()
    settings = config.load_quiz_settings()
    print(f"✓ {settings.questions_per_quiz} questions per quiz, "
          f"pass at {settings.pass_threshold}%, {settings.time_limit_minutes} minutes")
    print()

    if config.paths.resources_file.exists():
        content_store = JsonContentStore()
    else:
        print(f"⚠ {config.paths.resources_file} not found, using the demo catalogue")
        content_store = InMemoryContentStore(DEMO_RESOURCES)
    performance_store = JsonPerformanceStore()

    orchestrator = RevisionOrchestrator(
        learner_id="demo-learner",
        content_store=content_store,
        performance_store=performance_store,
        education_level="seconde",
        settings=settings,
        use_timer=True,
    )

    # ==================== Step 2: Levels ====================
    print("=" * 60)
    print("STEP 2: Choosing a level")
    print("=" * 60)

    subject = "math"
    levels = orchestrator.available_levels(subject)
    difficulty = orchestrator.suggested_difficulty(subject)
    print(f"  Available levels: {levels}")
    print(f"  Suggested level: {difficulty}")
    print()

    # ==================== Step 3: Quiz generation ====================
    print("=" * 60)
    print("STEP 3: Generating the quiz")
    print("=" * 60)

    try:
        overview = orchestrator.start_quiz(subject, difficulty, subject_label="Mathematics")
    except GenerationFailed as e:
        print(f"✗ Quiz generation failed, try again: {e}")
        return
    print(f"✓ {overview['title']} ({overview['total_questions']} questions)")
    print(f"  Deadline: {overview['deadline']}")
    if not overview["based_on_resources"]:
        print("  ⚠ The model could not read the resources; questions are general")
    print()

    # ==================== Step 4: Answering ====================
    print("=" * 60)
    print("STEP 4: Answering")
    print("=" * 60)

    question = overview["question"]
    while True:
        print(f"\nQ{question['question_id']}: {question['text']}")
        for choice in question.get("choices", []):
            print(f"   {choice['letter']}. {choice['text']}")
        if question["type"] == "true_false":
            print("   (true / false)")

        response = input("> ").strip()
        if not response:
            continue
        try:
            graded = orchestrator.submit_answer(response)
        except RevisionQuizError as e:
            print(f"✗ {e}")
            if orchestrator.session.completed:
                break
            continue
        print(f"  {'✓' if graded['is_correct'] else '✗'} {graded['feedback']}")

        step = orchestrator.advance()
        if step["completed"]:
            break
        question = step["question"]
    print()

    # ==================== Step 5: Results ====================
    print("=" * 60)
    print("STEP 5: Results")
    print("=" * 60)

    results = orchestrator.get_results()
    print(f"  Score: {results['score']}% "
          f"({results['correct_answers']}/{results['total_questions']} correct)")
    print(f"  Status: {'PASSED ✓' if results['passed'] else 'FAILED ✗'}")
    print(f"  Time: {results['time_spent']['minutes']}m {results['time_spent']['seconds']}s")
    print(f"  {results['message']}")
    for question_type, counts in results["by_type"].items():
        print(f"  - {question_type}: {counts['correct']}/{counts['total']}")
    if results["level_unlocked"]:
        print(f"  🔓 Level {results['unlocked_level']} unlocked!")
    for warning in results["warnings"]:
        print(f"  ⚠ {warning}")
    print()

    # ==================== Summary ====================
    print("=" * 60)
    print("PROGRESSION")
    print("=" * 60)

    records = performance_store.list_performance_records("demo-learner")
    progression = orchestrator.progression()
    print(f"  Attempts: {len(records)}, average score {average_score(records)}%")
    for row in subject_breakdown(records, progression.stored_averages()):
        print(f"  - {row['subject']}: {row['average_score']}% over {row['quiz_count']} quiz(zes)")
    print()
    print(token_tracker.summary())


if __name__ == "__main__":
    main()
