from pathlib import Path

from setuptools import find_namespace_packages, setup

# Load packages from requirements.txt
BASE_DIR = Path(__file__).parent
with open(Path(BASE_DIR, "requirements.txt")) as file:
    required_packages = [ln.strip() for ln in file.readlines() if ln.strip() and not ln.startswith("#")]

# Define our package
setup(
    name="RevisionQuiz",
    version="1.0.0",
    description="Adaptive revision quizzes generated from curated resources, with gamified level unlocking",
    python_requires=">=3.10",
    packages=find_namespace_packages(include=["revision_quiz", "revision_quiz.*"]),
    package_data={"revision_quiz": ["schemas/*.json"]},
    install_requires=required_packages,
    extras_require={
        "test": ["pytest>=7.0"],
        "dev": ["pre-commit==2.19.0", "pytest>=7.0"],
    },
)
