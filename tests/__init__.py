"""
Results core unit tests
"""

import unittest
from .test_api import APITests
from .test_cli import CommandLineTests
from .test_misc import (
    AccessPolicyTests, AuthenticationTests, EntityTagTests, LoggingTests,
    PayloadHelperTests, SettingsTests, VersioningTests
)
from .test_persistence import DatabaseUsabilityTests, ResultStoreTests


TEST_CLASSES = [
    AccessPolicyTests,
    APITests,
    AuthenticationTests,
    CommandLineTests,
    DatabaseUsabilityTests,
    EntityTagTests,
    LoggingTests,
    PayloadHelperTests,
    ResultStoreTests,
    SettingsTests,
    VersioningTests,
]


def get_suite() -> unittest.TestSuite:
    suite = unittest.TestSuite()
    for cls in TEST_CLASSES:
        for fixture in filter(lambda f: f.startswith("test_"), dir(cls)):
            suite.addTest(cls(fixture))
    return suite
