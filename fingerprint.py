"""
Randomized browser identities for outbound archive requests.

Each call draws an independent fingerprint; nothing ties one request's
identity to the next.
"""

import random
from dataclasses import dataclass, field

CHROME_VERSIONS = [
    '90.0.4430.212', '91.0.4472.124', '92.0.4515.159', '93.0.4577.82',
    '94.0.4606.81', '95.0.4638.69', '96.0.4664.110', '97.0.4692.98',
    '98.0.4758.102', '99.0.4844.84', '100.0.4896.127', '101.0.4951.67',
    '102.0.5005.115', '103.0.5060.134', '104.0.5112.102', '105.0.5195.127',
    '106.0.5249.119', '107.0.5304.121', '108.0.5359.98', '109.0.5414.119',
    '110.0.5481.177', '111.0.5563.146', '112.0.5615.49', '113.0.5672.63',
    '114.0.5735.199', '115.0.5790.170', '116.0.5845.96', '117.0.5938.89',
    '118.0.5993.88', '119.0.6045.105', '120.0.6099.109', '121.0.6167.85',
    '122.0.6261.69', '123.0.6312.58',
]

# (user agent OS token, Sec-Ch-Ua-Platform value)
OPERATING_SYSTEMS = [
    ('Windows NT 10.0; Win64; x64', 'Windows'),
    ('Windows NT 10.0; WOW64', 'Windows'),
    ('Macintosh; Intel Mac OS X 10_15_7', 'macOS'),
    ('Macintosh; Intel Mac OS X 11_0_1', 'macOS'),
    ('Macintosh; Intel Mac OS X 12_0_1', 'macOS'),
    ('X11; Linux x86_64', 'Linux'),
    ('X11; Ubuntu; Linux x86_64', 'Linux'),
]

ACCEPT_LANGUAGES = ['en-US,en;q=0.9', 'en-GB,en;q=0.9', 'en-US,en;q=0.8,de;q=0.5']

DOCUMENT_ACCEPT = (
    'text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,'
    'image/webp,image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7'
)


@dataclass
class Fingerprint:
    user_agent: str
    headers: dict = field(default_factory=dict)

    def as_headers(self) -> dict:
        """Full header set, including the User-Agent, ready for requests."""
        return {'User-Agent': self.user_agent, **self.headers}


def random_fingerprint(resource: bool = False, rng=random) -> Fingerprint:
    """Draw a user agent plus a header bundle consistent with it.

    Resource requests (images, stylesheets, ...) accept any content type;
    page requests advertise a browser navigation.
    """
    os_token, platform = rng.choice(OPERATING_SYSTEMS)
    version = rng.choice(CHROME_VERSIONS)
    major = version.split('.', 1)[0]
    user_agent = (
        f"Mozilla/5.0 ({os_token}) AppleWebKit/537.36 (KHTML, like Gecko) "
        f"Chrome/{version} Safari/537.36"
    )

    headers = {
        'Accept': '*/*' if resource else DOCUMENT_ACCEPT,
        'Accept-Language': rng.choice(ACCEPT_LANGUAGES),
        'Accept-Encoding': 'gzip, deflate',
        'Sec-Ch-Ua': f'"Not A(Brand";v="99", "Google Chrome";v="{major}", "Chromium";v="{major}"',
        'Sec-Ch-Ua-Mobile': '?0',
        'Sec-Ch-Ua-Platform': f'"{platform}"',
        'Sec-Fetch-Dest': 'empty' if resource else 'document',
        'Sec-Fetch-Mode': 'no-cors' if resource else 'navigate',
        'Sec-Fetch-Site': 'none',
        'Sec-Fetch-User': '?1',
        'Upgrade-Insecure-Requests': '1',
        'DNT': rng.choice(['0', '1']),
    }
    return Fingerprint(user_agent=user_agent, headers=headers)
