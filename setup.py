"""Install SQUADZ accounts package."""

from setuptools import setup, find_packages

test_require = ["pytest"]

setup(
    name='squadz-accounts',
    version='0.1.0',
    description='Account credential and session lifecycle for SQUADZ',
    packages=['squadz'] + [f'squadz.{package}' for package
                           in find_packages('./squadz', exclude=['*test*'])],
    install_requires=[
        "sqlalchemy>=1.4",
        "pyjwt[crypto]>=2.8",
        "pytz",
        "argon2-cffi",
        "google-auth",
        "requests",
        "cachecontrol",
        "python-json-logger",
        "click",
    ],
    extras_require={"test": test_require},
    entry_points={
        "console_scripts": [
            "squadz-generate-token=squadz.accounts.scripts.generate_token:generate_token",
            "squadz-create-db=squadz.accounts.scripts.create_db:create_db",
        ]
    },
    zip_safe=False
)
