# ec2ssh packaging

import pathlib

from setuptools import setup, find_packages

import ec2ssh

HERE = pathlib.Path(__file__).parent
README = (HERE / "README.md").read_text()

SCRIPTS = [
    "ec2ssh",
    "ec2scp",
    "ec2sftp",
    "ec2ssm",
    "ec2list",
]
VERSION = ec2ssh.__version__

requirements = HERE / "requirements.txt"
with requirements.open() as f:
    reqs = [req.strip() for req in f.readlines() if req.strip() and not req.startswith("#")]


def console_scripts() -> list:
    # Every binary runs the same entry point, the program name selects the mode
    return [f"{script} = ec2ssh.cli:main" for script in SCRIPTS]


setup(
    name="ec2ssh",
    version=VERSION,
    packages=find_packages(exclude=["tests", "tests.*"]),
    entry_points={
        "console_scripts": console_scripts(),
    },
    python_requires=">=3.9",
    install_requires=reqs,
    extras_require={
        "test": ["pytest", "moto[ec2,ssm]>=5"],
    },
    package_data={
        "": ["*.txt", "*.md"],
    },
    description="SSH to EC2 instances with ephemeral keys: " + " ".join(SCRIPTS),
    long_description=README,
    long_description_content_type="text/markdown",
    license="Apache License 2.0",
    keywords="aws ec2 ssh eice ssm " + " ".join(SCRIPTS),
    classifiers=[
        "Environment :: Console",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: Apache Software License",
        "Development Status :: 5 - Production/Stable",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3 :: Only",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: System :: Systems Administration",
        "Topic :: System :: Networking",
    ],
)
