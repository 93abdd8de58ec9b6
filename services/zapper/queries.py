# GraphQL documents for Zapper's portfolioV2 API.

TOKEN_BALANCES_QUERY = """
query TokenBalances($addresses: [Address!]!, $first: Int, $chainIds: [Int!]) {
  portfolioV2(addresses: $addresses, chainIds: $chainIds) {
    tokenBalances {
      totalBalanceUSD
      byToken(first: $first) {
        totalCount
        edges {
          node {
            symbol
            tokenAddress
            balance
            balanceUSD
            price
            name
            network { name }
          }
        }
      }
    }
  }
}
"""

_BASE_TOKEN_FIELDS = """
  type
  address
  network
  balance
  balanceUSD
  price
  symbol
  decimals
"""

APP_BALANCES_QUERY = f"""
query AppBalances($addresses: [Address!]!, $first: Int, $chainIds: [Int!]) {{
  portfolioV2(addresses: $addresses, chainIds: $chainIds) {{
    appBalances {{
      totalBalanceUSD
      byApp(first: $first) {{
        totalCount
        edges {{
          node {{
            balanceUSD
            app {{ displayName slug }}
            network {{ name slug chainId evmCompatible }}
            positionBalances(first: 10) {{
              edges {{
                node {{
                  ... on AppTokenPositionBalance {{
                    {_BASE_TOKEN_FIELDS}
                    appId
                    groupId
                    groupLabel
                    tokens {{
                      ... on BaseTokenPositionBalance {{ {_BASE_TOKEN_FIELDS} }}
                    }}
                  }}
                  ... on ContractPositionBalance {{
                    type
                    address
                    network
                    appId
                    groupId
                    groupLabel
                    balanceUSD
                    tokens {{
                      metaType
                      token {{
                        ... on BaseTokenPositionBalance {{ {_BASE_TOKEN_FIELDS} }}
                        ... on AppTokenPositionBalance {{
                          {_BASE_TOKEN_FIELDS}
                          appId
                        }}
                      }}
                    }}
                  }}
                }}
              }}
            }}
          }}
        }}
      }}
    }}
  }}
}}
"""
