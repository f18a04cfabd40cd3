"""
SPDX-License-Identifier: Apache-2.0
"""

import setuptools

if __name__ == "__main__":
    setuptools.setup(
        name="dagacl",
        version="0.1.0",
        description="View and modify ACLs for an application master and the DAGs it runs",
        license="Apache-2.0",
        python_requires=">=3.9",
        packages=setuptools.find_packages(include=["dagacl", "dagacl.*"]),
        install_requires=["PyYAML"],
        extras_require={"test": ["pytest"]},
        data_files=[("share/dagacl/config", ["config/acl.conf", "config/logging.conf"])],
        entry_points={
            "console_scripts": [
                "dagacl_check=dagacl.cmd.acl_check:main",
            ],
        },
    )
