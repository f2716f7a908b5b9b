"""
Setup script for the Patchwork GP package.
"""

from setuptools import find_packages, setup

if __name__ == "__main__":
    setup(
        name="patchwork-gp",
        version="0.1.0",
        packages=find_packages(exclude=["tests", "tests.*"]),
        python_requires=">=3.9",
        install_requires=[
            "numpy>=1.21.0",
            "scipy>=1.7.0",
            "pyyaml>=6.0",
        ],
        extras_require={
            "test": [
                "pytest>=7.0",
            ],
            "dev": [
                "pytest>=7.0",
                "pytest-cov>=4.0",
                "black>=23.0",
                "isort>=5.0",
                "mypy>=1.0",
            ],
        },
        author="Patchwork GP Project Team",
        description="Patchwork Kriging: large-scale GP regression from boundary-stitched local GPs",
        long_description=open("README.md").read(),  # noqa: SIM115
        long_description_content_type="text/markdown",
        license="MIT",
        classifiers=[
            "Development Status :: 4 - Beta",
            "Intended Audience :: Science/Research",
            "License :: OSI Approved :: MIT License",
            "Programming Language :: Python :: 3",
            "Topic :: Scientific/Engineering",
        ],
    )
