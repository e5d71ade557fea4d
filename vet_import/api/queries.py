"""GraphQL documents for the Vetspire API.

Fetch queries select every field the transformer writes so that the
deep-equality check in the reconciler can see them (a field missing from the
snapshot would always compare unequal and trigger an update on every run).
"""

GET_CLIENTS_QUERY = """
query GetClients($limit: Int, $offset: Int) {
  clients(limit: $limit, offset: $offset) {
    id
    givenName
    familyName
    email
    notes
    primaryLocationId
    historicalId
    isActive
    addresses { id line1 city state postalCode }
    phoneNumbers { id value }
  }
}
"""

GET_PATIENTS_QUERY = """
query GetPatients($limit: Int, $offset: Int) {
  patients(limit: $limit, offset: $offset) {
    id
    name
    species
    breed
    color
    sex
    neutered
    birthDate
    historicalId
    isActive
    isDeceased
    privateNotes
    client { id givenName familyName email primaryLocationId }
  }
}
"""

GET_PATIENTS_WITH_IMMUNIZATIONS_QUERY = """
query GetPatientsWithImmunizations($limit: Int, $offset: Int) {
  patients(limit: $limit, offset: $offset) {
    id
    name
    client { id givenName familyName }
    immunizations {
      id
      name
      patient { id name }
      location { id name }
      provider { id name }
      date
      dueDate
      administered
      historical
      lotNumber
      manufacturer
      expiryDate
    }
  }
}
"""

CREATE_CLIENT_MUTATION = """
mutation CreateClient($input: ClientInput!) {
  createClient(input: $input) {
    id
    givenName
    familyName
    email
    notes
    primaryLocationId
    historicalId
    isActive
    addresses { id line1 city state postalCode }
    phoneNumbers { id value }
  }
}
"""

UPDATE_CLIENT_MUTATION = """
mutation UpdateClient($id: ID!, $input: ClientInput!) {
  updateClient(id: $id, input: $input) {
    id
    givenName
    familyName
    email
    notes
    primaryLocationId
    historicalId
    isActive
    addresses { id line1 city state postalCode }
    phoneNumbers { id value }
  }
}
"""

CREATE_PATIENT_MUTATION = """
mutation CreatePatient($clientId: ID!, $input: PatientInput!) {
  createPatient(clientId: $clientId, input: $input) {
    id
    name
    species
    breed
    color
    sex
    neutered
    birthDate
    historicalId
    isActive
    isDeceased
    client { id }
  }
}
"""

UPDATE_PATIENT_MUTATION = """
mutation UpdatePatient($id: ID!, $input: PatientInput!) {
  updatePatient(id: $id, input: $input) {
    id
    name
    species
    breed
    color
    sex
    neutered
    birthDate
    historicalId
    isActive
    isDeceased
    client { id }
  }
}
"""

CREATE_IMMUNIZATION_MUTATION = """
mutation CreateImmunization($input: ImmunizationInput!) {
  createImmunization(input: $input) {
    id
    name
    patient { id name }
    location { id name }
    provider { id name }
    date
    dueDate
    administered
    historical
    lotNumber
    manufacturer
    expiryDate
  }
}
"""
