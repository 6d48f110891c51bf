"""Canned advisory answers picked by keyword. Not a model, just a lookup table."""

import re

DEFAULT_RESPONSE = (
    "I can help you with investment analysis, market insights, and strategic advisory "
    "questions across all asset classes."
)

KNOWLEDGE_BASE = {
    "buyout": (
        "Buyout strategies involve acquiring controlling stakes in mature companies, often using leverage "
        "to enhance returns. Key focus areas include operational improvements, strategic repositioning, and "
        "financial optimization."
    ),
    "venture_capital": (
        "Venture capital focuses on early-stage companies with high growth potential and scalable business "
        "models. Due diligence emphasizes team quality, market size, and competitive positioning."
    ),
    "real_estate": (
        "Real estate investments provide inflation protection and stable cash flows through property "
        "ownership. Key metrics include cap rates, NOI growth, and location fundamentals."
    ),
    "infrastructure": (
        "Infrastructure investments offer long-term, stable returns through essential service providers. "
        "Focus areas include transportation, utilities, and social infrastructure."
    ),
    "hedge_funds": (
        "Hedge fund strategies employ various techniques to generate alpha and manage downside risk. Due "
        "diligence focuses on process consistency and risk controls."
    ),
    "ai": (
        "AI investments span infrastructure, applications, and enabling technologies across multiple sectors. "
        "Key themes include compute power, data management, and application layer innovations."
    ),
    "quantum": (
        "Quantum computing represents a transformational technology with applications in cryptography, "
        "optimization, and scientific computing. Investment timeline remains long-term."
    ),
    "crypto": (
        "Cryptocurrency and blockchain investments require careful risk assessment and regulatory "
        "consideration. Infrastructure plays are often preferred over direct token exposure."
    ),
}

# First match wins. Short keywords are matched as whole words.
RULES = (
    (("private equity", "buyout"), KNOWLEDGE_BASE["buyout"]
     + " I can provide detailed analysis on target companies, valuation metrics, and exit strategies."),
    (("venture capital", r"\bvc\b"), KNOWLEDGE_BASE["venture_capital"]
     + " I can analyze market trends, due diligence checklists, and portfolio construction strategies."),
    (("real estate", "property"), KNOWLEDGE_BASE["real_estate"]
     + " I can assist with market analysis, cap rate trends, and portfolio allocation strategies."),
    (("infrastructure",), KNOWLEDGE_BASE["infrastructure"]
     + " I can provide insights on regulatory frameworks, ESG considerations, and risk assessment."),
    (("hedge fund",), KNOWLEDGE_BASE["hedge_funds"]
     + " I can analyze strategy performance, risk metrics, and manager selection criteria."),
    ((r"\bai\b", "artificial intelligence"), KNOWLEDGE_BASE["ai"]
     + " I can provide market sizing, competitive analysis, and investment frameworks for AI opportunities."),
    (("quantum",), KNOWLEDGE_BASE["quantum"]
     + " I can analyze the investment landscape, key players, and timeline for commercialization."),
    (("crypto", "blockchain"), KNOWLEDGE_BASE["crypto"]
     + " I can provide regulatory updates, risk frameworks, and portfolio integration strategies."),
    (("allocation", "portfolio"),
     "Strategic asset allocation requires balancing risk, return, and correlation across asset classes. "
     "I can help optimize portfolio construction based on your investment objectives, time horizon, and "
     "risk tolerance."),
    (("due diligence",),
     "Due diligence involves comprehensive analysis of investment opportunities including financial, "
     "operational, legal, and strategic factors. I can provide customized checklists and analysis "
     "frameworks for different asset classes."),
    ((r"\besg\b", "sustainability"),
     "ESG integration is becoming critical for long-term value creation. I can help develop ESG frameworks, "
     "impact measurement tools, and regulatory compliance strategies."),
    (("risk", "volatility"),
     "Risk management requires understanding correlation structures, tail risks, and scenario analysis. "
     "I can help with stress testing, VaR calculations, and risk budgeting frameworks."),
    (("performance", "returns"),
     "Performance analysis involves attribution, benchmarking, and risk-adjusted returns. I can help with "
     "Sharpe ratios, alpha generation, and performance measurement frameworks."),
)


def answer(query: str) -> str:
    text = query.lower()
    for keywords, response in RULES:
        if any(re.search(keyword, text) for keyword in keywords):
            return response
    return DEFAULT_RESPONSE
