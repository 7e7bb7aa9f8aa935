"""
Stealth Patches for Playwright

Launch flags, context options and an init script that make the headless
Chromium used for archive crawling look like an ordinary desktop browser.
"""

# Injected before any page script runs
STEALTH_JS = """
Object.defineProperty(navigator, 'webdriver', { get: () => false });
"""

USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36'
)

VIEWPORT = {'width': 1920, 'height': 1080}

EXTRA_HTTP_HEADERS = {
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.9',
    'Upgrade-Insecure-Requests': '1',
}


def get_stealth_args(debugging_port=None):
    """Chromium flags; a debugging port lets other processes connect over CDP."""
    args = [
        '--disable-blink-features=AutomationControlled',
        '--disable-features=IsolateOrigins,site-per-process',
        '--disable-dev-shm-usage',
        '--disable-setuid-sandbox',
        '--no-sandbox',
        '--no-first-run',
        '--no-default-browser-check',
    ]
    if debugging_port is not None:
        args.append(f'--remote-debugging-port={debugging_port}')
    return args


def get_context_options():
    return {
        'user_agent': USER_AGENT,
        'viewport': VIEWPORT,
        'device_scale_factor': 1,
        'has_touch': False,
        'java_script_enabled': True,
        'extra_http_headers': EXTRA_HTTP_HEADERS,
    }
