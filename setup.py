#!/usr/bin/env python

# This software is provided 'as-is', without any express or implied
# warranty.  In no event will the author be held liable for any damages
# arising from the use of this software.
#
# Permission is granted to anyone to use this software for any purpose,
# including commercial applications, and to alter it and redistribute it
# freely, subject to the following restrictions:
#
# 1. The origin of this software must not be misrepresented; you must not
#    claim that you wrote the original software. If you use this software
#    in a product, an acknowledgment in the product documentation would be
#    appreciated but is not required.
# 2. Altered source versions must be plainly marked as such, and must not be
#    misrepresented as being the original software.
# 3. This notice may not be removed or altered from any source distribution.
#
# Copyright (c) 2008 Greg Hewgill http://hewgill.com
#
# This has been modified from the original software.

from setuptools import setup

version = "0.1"

setup(
    name = "pyemailauth",
    version = version,
    description = "zk-email circuit inputs from DKIM signed mail",
    long_description =
    """pyemailauth turns a DKIM signed email into the JSON inputs of the
email_auth zero-knowledge circuits, and can drive snarkjs to prove them.""",
    license = "BSD-like",
    packages = ["emailauth", "emailauth.tests"],
    package_data = {"emailauth.tests": ["data/*"]},
    scripts = ["genemailinput.py"],
    python_requires = ">=3.7",
    install_requires = [
        "dnspython>=2.0.0",
        "aiodns",
        "cryptography",
    ],
    extras_require = {
        "testing": ["pytest"],
    },
    test_suite = "emailauth.tests.test_suite",
)
