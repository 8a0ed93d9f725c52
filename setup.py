import os

from setuptools import find_packages, setup


# read the version from the VERSION file
def get_version():
    with open(os.path.join(os.path.dirname(__file__), "VERSION"), "r") as version_file:
        return version_file.read().strip()


# Set the version in the cfn_hotswap/version.py file
def set_version_constant(version: str):
    with open(
        os.path.join(os.path.dirname(__file__), "cfn_hotswap", "version.py"), "w"
    ) as version_file:
        version_file.write(f'__version__ = "{version}"\n')


version = get_version()
set_version_constant(version)

setup(
    name="cfn-hotswap",
    version=version,
    description="Deploy changes of CloudFormation stacks by updating the changed resources directly",
    license="Apache-2.0",
    python_requires=">=3.11",
    packages=find_packages(include=["cfn_hotswap", "cfn_hotswap.*"]),
    install_requires=[
        "boto3>=1.34",
        "botocore>=1.34",
        "click>=8.1",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "moto[stepfunctions]>=5.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "cfn-hotswap=cfn_hotswap.cli.main:main",
        ],
    },
)
