pytest_plugins = [
    "tests.fixtures.release_store",
    "tests.fixtures.app_client",
]
