#!/usr/bin/env python3
"""
Test runner for the Discord Trivia Quiz Bot.
Runs all unit and integration tests, or one category of them.

Usage:
    python -m tests.run_all_tests [category]
"""
import unittest
import sys
import time

TEST_MODULES = [
    'tests.test_models',
    'tests.test_storage',
    'tests.test_config_manager',
    'tests.test_high_scores',
    'tests.test_question_source',
    'tests.test_quiz_session',
    'tests.test_quiz_engine',
    'tests.test_quiz_controller',
    'tests.test_bot_discord_integration',
    'tests.test_integration_comprehensive',
]

CATEGORIES = {
    'unit': TEST_MODULES[:8],
    'integration': ['tests.test_integration_comprehensive'],
    'discord': ['tests.test_bot_discord_integration'],
    'storage': ['tests.test_storage', 'tests.test_config_manager', 'tests.test_high_scores'],
    'source': ['tests.test_question_source'],
    'session': ['tests.test_quiz_session'],
    'engine': ['tests.test_quiz_engine'],
    'controller': ['tests.test_quiz_controller'],
}


def load_suite(module_names):
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()
    for module_name in module_names:
        try:
            suite.addTest(loader.loadTestsFromName(module_name))
            print(f"✓ Loaded tests from {module_name}")
        except Exception as e:
            print(f"✗ Failed to load {module_name}: {e}")
    return suite


def run_test_suite(module_names=TEST_MODULES):
    """Run the given test modules and print a summary report."""
    print("=" * 70)
    print("Discord Trivia Quiz Bot - Test Suite")
    print("=" * 70)

    suite = load_suite(module_names)

    print("\n" + "=" * 70)
    print("Running Tests...")
    print("=" * 70)

    runner = unittest.TextTestRunner(verbosity=2, stream=sys.stdout, buffer=True)

    start_time = time.time()
    result = runner.run(suite)
    end_time = time.time()

    print("\n" + "=" * 70)
    print("Test Summary Report")
    print("=" * 70)

    total_tests = result.testsRun
    failures = len(result.failures)
    errors = len(result.errors)
    skipped = len(result.skipped)
    passed = total_tests - failures - errors - skipped

    print(f"Total Tests Run: {total_tests}")
    print(f"Passed: {passed}")
    print(f"Failed: {failures}")
    print(f"Errors: {errors}")
    print(f"Skipped: {skipped}")
    print(f"Success Rate: {(passed/total_tests)*100:.1f}%" if total_tests > 0 else "N/A")
    print(f"Execution Time: {end_time - start_time:.2f} seconds")

    for label, problems in (("FAILURES", result.failures), ("ERRORS", result.errors)):
        if problems:
            print("\n" + "-" * 50)
            print(f"{label}:")
            print("-" * 50)
            for test, traceback in problems:
                print(f"\n{test}:")
                print(traceback)

    return result.wasSuccessful()


if __name__ == '__main__':
    if len(sys.argv) > 1:
        category = sys.argv[1]
        if category not in CATEGORIES:
            print(f"Unknown category: {category}")
            print(f"Available categories: {', '.join(CATEGORIES)}")
            sys.exit(1)
        success = run_test_suite(CATEGORIES[category])
    else:
        success = run_test_suite()

    sys.exit(0 if success else 1)
