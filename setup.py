import os

from setuptools import setup, find_packages

version_file = os.path.join(os.path.dirname(__file__), "cornichon", "version.py",)
with open(version_file, "r") as f:
    exec(f.read())

setup(
    name="cornichon",
    version=__version__,  # noqa: F821
    packages=find_packages(include=["cornichon", "cornichon.*"]),
    include_package_data=True,
    description="A parser for Gherkin-style feature documents.",
    license="GPLv2",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: GNU General Public License v2 (GPLv2)",
        "Operating System :: POSIX :: Linux",
        "Operating System :: Microsoft :: Windows",
        "Operating System :: MacOS",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.7",
        "Topic :: Software Development :: Testing :: BDD",
    ],
    keywords="Gherkin BDD feature parser PEG",
    python_requires=">=3.7",
    extras_require={
        "test": ["pytest"],
        "docs": ["sphinx", "numpydoc"],
    },
    entry_points={"console_scripts": []},
)
