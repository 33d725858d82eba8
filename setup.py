from setuptools import setup, find_packages

setup(
    name="sample_wfc",
    version="0.1.0",
    author="Your Name",
    description="Simplified overlapping Wave Function Collapse that grows images from a small sample",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy",
        "pygame",
        "pillow",
        "pyyaml",
        "tqdm",
    ],
    extras_require={
        "test": ["pytest"],
    },
    python_requires=">=3.8",
)
