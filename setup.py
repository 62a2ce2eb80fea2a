from setuptools import setup, find_packages
import os


def get_version() -> str:
    init_path = os.path.join(os.path.dirname(__file__), "ecoforecast", "__init__.py")
    with open(init_path, "r", encoding="utf-8") as f:
        for line in f:
            if line.startswith("__version__"):
                return line.split("=")[1].strip().strip('"').strip("'")
    return "0.0.0"


def read_requirements(filename: str = "requirements.txt") -> list[str]:
    req_path = os.path.join(os.path.dirname(__file__), filename)
    if not os.path.exists(req_path):
        return []

    reqs: list[str] = []
    with open(req_path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            # setuptools does not accept flags like `-r ...` in install_requires
            if line.startswith("-"):
                continue
            reqs.append(line)
    return reqs


setup(
    name="ecoforecast-assessment",
    version=get_version(),
    packages=find_packages(include=["ecoforecast", "ecoforecast.*"]),
    install_requires=read_requirements(),
    extras_require={"test": ["pytest>=7"]},
    python_requires=">=3.9",
    description="Ecological forecasting exercises: flux model assessment and state-space random-walk fits",
    author="JGRC",
)
